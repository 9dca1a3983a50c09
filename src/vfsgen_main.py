import logging
import os
import sys
from logging.config import fileConfig

from vfsgen import generate_from_folder
from vfsgen_utils import init_env_from_file

fileConfig(os.path.join(os.path.dirname(os.path.abspath(__file__)), "logging.conf"))
logging.info("Configured logging")

if __name__ == "__main__":
    init_env_from_file()
    vfsgen_folder = sys.argv[1] if len(sys.argv) > 1 else "/data/vfsgen"
    if not os.path.exists(vfsgen_folder):
        logging.error(f"Generator folder does not exist: {vfsgen_folder}")
        sys.exit(1)
    generate_from_folder(vfsgen_folder)
