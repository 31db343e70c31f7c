#!/usr/bin/env python3
# -*- coding: utf-8 -*-
import sys
import build
from riscv_gcc import riscv_gcc

if __name__ == "__main__":
    sys.exit(build.main(riscv_gcc))
