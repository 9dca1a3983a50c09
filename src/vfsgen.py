import json
import logging
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from infra.emitter import Emitter, JsonlGzEmitter
from infra.fake_fs.filesystem import FakeFileSystem
from infra.fake_fs_datastore import FakeFSDataStore
from infra.fs_json_to_jsonl_gz import convert
from infra.interfaces import VirtualFileSystem
from infra.os_fs import OSFileSystem
from infra.table_builder import Table, build_table

logger = logging.getLogger(__name__)


@dataclass
class Options:
    """
    Settings for the generated artifact. They only affect how the artifact is emitted,
    never which nodes end up in the table.
    """

    filename: Optional[str] = None
    variable_name: Optional[str] = None
    description: Optional[str] = None
    build_tags: str = ""

    def fill_missing(self):
        if not self.variable_name:
            self.variable_name = "assets"
        if not self.filename:
            self.filename = f"{self.variable_name.lower()}_vfsdata.jsonl.gz"
        if not self.description:
            self.description = (
                f"{self.variable_name} statically implements the virtual filesystem"
                " provided to vfsgen."
            )

    @classmethod
    def from_config(cls, config: dict) -> "Options":
        return cls(
            filename=config.get("filename"),
            variable_name=config.get("variable_name"),
            description=config.get("description"),
            build_tags=config.get("build_tags", ""),
        )


def generate(
    input_fs: VirtualFileSystem, options: Options, emitter: Emitter = None
) -> Table:
    """
    Build the table of input_fs and write it as a single artifact to options.filename.
    The artifact is produced in memory and written at once, so a failure leaves no output.
    """
    options.fill_missing()
    emitter = emitter or JsonlGzEmitter()

    table = build_table(input_fs, "/")
    data = emitter.emit(table, options)

    logger.info(f"writing {options.filename}")
    Path(options.filename).write_bytes(data)
    return table


def create_input_fs(input_path: str) -> VirtualFileSystem:
    """
    A .jsonl.gz fake filesystem dump, a .json nested tree (converted to a dump first),
    or a directory on disk. Fake filesystems are loaded into memory, so the converted dump
    is removed before returning.
    """
    if input_path.endswith(".json"):
        with tempfile.TemporaryDirectory() as tmp_dir:
            dump_path = os.path.join(tmp_dir, "fs.jsonl.gz")
            convert(input_path, dump_path)
            return FakeFileSystem(FakeFSDataStore(dump_path))
    if input_path.endswith(".jsonl.gz"):
        return FakeFileSystem(FakeFSDataStore(input_path))
    return OSFileSystem(input_path)


def _load_config(folder_path: str) -> dict:
    with open(os.path.join(folder_path, "config.json"), "r") as f:
        return json.load(f)


def generate_from_folder(folder: str) -> Table:
    """
    Generate using folder/config.json. "input" is a directory or a .jsonl.gz fake filesystem,
    relative paths are resolved against folder. The output goes to VFSGEN_OUTPUT_DIR when set,
    otherwise next to config.json.
    """
    config = _load_config(folder)
    options = Options.from_config(config)
    options.fill_missing()

    input_path = os.path.join(folder, config.get("input", "assets"))
    output_dir = os.getenv("VFSGEN_OUTPUT_DIR", folder)
    options.filename = os.path.join(output_dir, options.filename)

    logger.info(f"Generating {options.variable_name} from {input_path}")
    return generate(create_input_fs(input_path), options)
