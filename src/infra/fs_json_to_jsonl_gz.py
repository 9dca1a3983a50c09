import gzip
import json
import logging
import sys
from typing import List

logger = logging.getLogger(__name__)


def flatten_tree(tree: dict, parent_path="/") -> List[dict]:
    """
    Flatten a nested tree such as
    {"etc": {"type": "dir", "content": {"motd": {"type": "file", "content": "hi"}}}}
    into fake filesystem nodes, parents before children.
    """
    nodes = []
    for name, info in tree.items():
        current_path = parent_path.rstrip("/") + "/" + name
        is_dir = info["type"] == "dir"
        content = None if is_dir else info.get("content", "")
        node = {
            "path": current_path,
            "parent_path": parent_path,
            "name": name,
            "is_dir": is_dir,
            "permissions": info.get(
                "permissions", "drwxr-xr-x" if is_dir else "-rw-r--r--"
            ),
            "owner": info.get("owner", "root"),
            "size": 0 if is_dir else len(content.encode("utf-8")),
            "modified_at": info.get("modified_at", None),
            "content": content,
        }
        nodes.append(node)
        if is_dir:
            nodes.extend(flatten_tree(info.get("content", {}), current_path))
    return nodes


def convert_tree(tree: dict, out_path: str) -> int:
    nodes = flatten_tree(tree)

    with gzip.open(out_path, "wt") as f:
        root_node = {
            "path": "/",
            "parent_path": None,
            "name": "/",
            "is_dir": True,
            "permissions": "drwxr-xr-x",
            "owner": "root",
            "size": 0,
            "modified_at": None,
            "content": None,
        }
        f.write(json.dumps(root_node) + "\n")

        for node in nodes:
            f.write(json.dumps(node) + "\n")
    return len(nodes) + 1


def convert(json_path: str, out_path: str):
    with open(json_path, "r") as f:
        tree = json.load(f)

    count = convert_tree(tree, out_path)
    logger.info(f"Converted {json_path} to {out_path} with {count} entries")


if __name__ == "__main__":
    if len(sys.argv) != 3:
        print("Usage: python fs_json_to_jsonl_gz.py <in.json> <out.jsonl.gz>")
        sys.exit(1)
    convert(sys.argv[1], sys.argv[2])
