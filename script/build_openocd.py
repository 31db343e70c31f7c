#!/usr/bin/env python3
# -*- coding: utf-8 -*-
import sys
import build
from openocd import openocd

if __name__ == "__main__":
    sys.exit(build.main(openocd))
