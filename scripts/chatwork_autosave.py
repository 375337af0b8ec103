#!/usr/bin/env python3
"""Run one auto-save pass; schedule this from cron.

    chatwork_autosave.py [--config <ini>] [--token <token>]
"""
import sys

from chatkeep.cli import autosave_main

if __name__ == "__main__":
    sys.exit(autosave_main())
