import os
import sys

from fastapi import __version__ as fastapi_version


def get_runtime_info():
    return {
        "app_version": os.environ.get("MEDIA_EXPLORER_VERSION", "0.0.0"),
        "python_version": sys.version.split()[0],
        "fastapi_version": fastapi_version,
    }
