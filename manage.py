#!/usr/bin/env python
import os
import sys

# Local runs default to dev settings; deployments set DJANGO_SETTINGS_MODULE=backend.settings.prod
os.environ.setdefault("DJANGO_SETTINGS_MODULE", "backend.settings.dev")

from django.core.management import execute_from_command_line

if __name__ == "__main__":
    execute_from_command_line(sys.argv)
