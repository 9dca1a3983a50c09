import logging
import os
import socket
from pathlib import Path

_PROJECT_FOLDER = Path(os.path.dirname(os.path.abspath(__file__))).parent.absolute()


def get_project_folder() -> str:
    return str(_PROJECT_FOLDER)


def init_env_from_file():
    full_file_name = os.path.join(get_project_folder(), "config", "vfsgen.env.list")
    if os.path.exists(full_file_name):
        logging.info(f"Going to set env variables from file: {full_file_name}")
        with open(full_file_name) as f:
            for line in f:
                line = line.strip()
                if not line or line.startswith("#"):
                    continue
                key, value = line.split("=", 1)
                os.environ[key] = value


def allocate_port():
    """
    allocate a dynamic port
    :return: port number
    """
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("", 0))
        s.listen(1)
        port = s.getsockname()[1]
    return port


def normalize_path(path: str, cwd: str = "/") -> str:
    """
    Resolve path against cwd into an absolute '/'-separated path,
    collapsing '.', '..' and repeated separators. '..' never goes above the root.
    """
    if path.startswith("/"):
        base = []
    else:
        base = [p for p in cwd.strip("/").split("/") if p]

    parts = path.strip("/").split("/")
    for part in parts:
        if part in ("", "."):
            continue
        elif part == "..":
            if base:
                base.pop()
        else:
            base.append(part)

    return "/" + "/".join(base)
