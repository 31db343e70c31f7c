import os
import enum
import json
import typing
import common

stamp_file_name = "stamp-install-completed"
state_file_name = "stage-state.json"


class stage_state(enum.StrEnum):
    """构建阶段的状态"""

    pending = "pending"  # 尚未开始
    in_progress = "in-progress"  # 已开始但未完成，重新运行时会完整重做
    complete = "complete"  # 已完成，存在标记文件


class stage:
    name: str  # 阶段名称
    build_dir: str  # 阶段构建目录，重做时会被删除
    stamp_path: str  # 完成标记文件路径
    body: typing.Callable[[], None]  # 阶段内容

    def __init__(self, name: str, target_build_folder: str, body: typing.Callable[[], None]) -> None:
        self.name = name
        self.build_dir = os.path.join(target_build_folder, name)
        # 标记文件位于构建目录内，删除构建目录即删除标记
        self.stamp_path = os.path.join(self.build_dir, stamp_file_name)
        self.body = body

    def is_complete(self) -> bool:
        return os.path.isfile(self.stamp_path)


class stage_record:
    """记录每个阶段状态的文件，位于平台构建目录中"""

    path: str
    target: str
    state_list: dict[str, stage_state]

    def __init__(self, target_build_folder: str, target: str) -> None:
        self.path = os.path.join(target_build_folder, state_file_name)
        self.target = target
        self.state_list = {}
        if os.path.exists(self.path):
            with open(self.path) as file:
                content = json.load(file)
            self.state_list = {name: stage_state(state) for name, state in content.get("stages", {}).items()}

    def get(self, item: stage) -> stage_state:
        """获取阶段状态，完成与否只由标记文件决定

        Args:
            item (stage): 构建阶段
        """
        if item.is_complete():
            return stage_state.complete
        if self.state_list.get(item.name) == stage_state.in_progress:
            return stage_state.in_progress
        return stage_state.pending

    def set(self, item: stage, state: stage_state) -> None:
        self.state_list[item.name] = state
        self.save()

    @common._support_dry_run()
    def save(self) -> None:
        os.makedirs(os.path.dirname(self.path), exist_ok=True)
        with open(self.path, "w") as file:
            json.dump({"target": self.target, "stages": self.state_list}, file, indent=4)


class stage_runner:
    """按顺序运行构建阶段，跳过已完成的阶段"""

    record: stage_record
    stage_list: list[stage]
    completed: set[str]  # 本次运行中完成的阶段，dry run时标记文件不会被创建

    def __init__(self, target_build_folder: str, target: str) -> None:
        self.record = stage_record(target_build_folder, target)
        self.stage_list = []
        self.completed = set()

    def add(self, name: str, body: typing.Callable[[], None]) -> stage:
        """在末尾添加构建阶段

        Args:
            name (str): 阶段名称
            body (Callable[[], None]): 阶段内容，在阶段构建目录中执行
        """
        assert name not in (item.name for item in self.stage_list), f'Duplicate stage "{name}".'
        target_build_folder = os.path.dirname(self.record.path)
        item = stage(name, target_build_folder, body)
        self.stage_list.append(item)
        return item

    def _done(self, item: stage) -> bool:
        return item.name in self.completed or item.is_complete()

    def run_stage(self, index: int, force: bool = False) -> bool:
        """运行指定阶段

        Args:
            index (int): 阶段序号
            force (bool, optional): 是否忽略完成标记重新构建. 默认为False.

        Returns:
            bool: 是否实际进行了构建
        """
        item = self.stage_list[index]
        if index > 0:
            previous = self.stage_list[index - 1]
            assert self._done(previous), f'Stage "{item.name}" cannot start before stage "{previous.name}" is complete.'
        state = self.record.get(item)
        if state == stage_state.complete and not force:
            common.echo(f'Stage "{item.name}" of {self.record.target} is complete, skip.')
            self.completed.add(item.name)
            return False
        if state == stage_state.in_progress:
            common.echo(f'Stage "{item.name}" of {self.record.target} was interrupted, rebuild it.')

        common.echo(f'Running stage "{item.name}" of {self.record.target}...')
        self.record.set(item, stage_state.in_progress)
        common.mkdir(item.build_dir)
        guard = common.chdir_guard(item.build_dir)
        try:
            item.body()
        finally:
            del guard
        common.touch(item.stamp_path)
        self.record.set(item, stage_state.complete)
        self.completed.add(item.name)
        return True

    def run(self) -> int:
        """按顺序运行所有阶段，某阶段重新构建后其后的阶段都会重新构建，任一阶段失败时异常向上传播且不会创建该阶段的标记文件

        某阶段重新构建后，其后阶段已有的标记文件被有意忽略，这些阶段总是重新构建。

        Returns:
            int: 实际构建的阶段数
        """
        count = 0
        for index in range(len(self.stage_list)):
            # 前面的阶段重新构建后，后续阶段的产物已经过时
            if self.run_stage(index, count != 0):
                count += 1
        return count

    def dump_state(self) -> dict[str, stage_state]:
        return {item.name: self.record.get(item) for item in self.stage_list}


assert __name__ != "__main__", "Import this file instead of running it directly."
