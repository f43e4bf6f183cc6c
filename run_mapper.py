#!/usr/bin/env python
# run_mapper.py
import sys

from vcluster_hostpath_mapper.cli import main

sys.exit(main())
