# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
Collects a contract source file together with the files it imports.

STRATO compiles sources uploaded as a map of file name to source text. Import
statements are resolved locally: every ``import "file.sol";`` line is commented
out and the imported file is added to the map, recursively. Files are keyed by
their short name, so a file is included once even when imported from several
places. Import paths starting with ``/`` are relative to the working directory,
all others to the importing file.
"""

import os
import re
import tempfile
import unittest
from typing import Dict, List, Set, Tuple, Union

IMPORT_PREFIX = re.compile(r"import\s+", re.IGNORECASE)


class Importer:
    imported: Set[str]

    def __init__(self):
        self.imported = set()

    def is_imported(self, path: str) -> bool:
        """Mark ``path`` as imported; True if its short name was seen before."""
        name = short_name(path)
        if name in self.imported:
            return True
        self.imported.add(name)
        return False

    def read(self, files: List[Tuple[str, str]], path: str) -> List[Tuple[str, str]]:
        with open(path, "r", newline="") as f:
            lines = f.read().split("\n")
        self.is_imported(path)
        buffer = ""
        for line in lines:
            if line.startswith("import"):
                buffer += "//" + line + "\n"
                files = self.import_file(files, path, line)
            else:
                buffer += line.replace("\r", " ") + "\n"
        return files + [(short_name(path), buffer)]

    def import_file(
        self, files: List[Tuple[str, str]], path: str, line: str
    ) -> List[Tuple[str, str]]:
        import_name = IMPORT_PREFIX.sub("", line, count=1)
        import_name = import_name.replace('"', "").replace(";", "", 1).replace("\r", "")
        if self.is_imported(import_name):
            return files
        if import_name.startswith("/"):
            return self.read(files, os.path.join(os.getcwd(), import_name.lstrip("/")))
        return self.read(files, os.path.join(os.path.dirname(path), import_name))


def short_name(path: str) -> str:
    return path.replace("\\", "/").split("/")[-1]


def combine(
    filename: str, to_object: bool = True
) -> Union[Dict[str, str], List[Tuple[str, str]]]:
    """Read ``filename`` and its imports.

    :return: ``{short_name: source}`` (or a list of pairs when ``to_object`` is
        False), imported files first and ``filename`` last.
    """
    files = Importer().read([], filename)
    if to_object:
        return dict(files)
    return files


class Test(unittest.TestCase):
    def setUp(self):
        self.dir = tempfile.TemporaryDirectory()
        self.addCleanup(self.dir.cleanup)

    def write(self, name: str, content: str) -> str:
        path = os.path.join(self.dir.name, name)
        os.makedirs(os.path.dirname(path), exist_ok=True)
        with open(path, "w", newline="") as f:
            f.write(content)
        return path

    def test_single_file(self):
        path = self.write("Main.sol", "contract Main {}")
        self.assertEqual(combine(path), {"Main.sol": "contract Main {}\n"})

    def test_imports(self):
        self.write("lib/Owned.sol", "contract Owned {}")
        self.write("Base.sol", 'import "lib/Owned.sol";\ncontract Base is Owned {}')
        path = self.write(
            "Main.sol",
            'import "Base.sol";\nimport "lib/Owned.sol";\ncontract Main is Base {}',
        )

        files = combine(path)

        self.assertEqual(list(files), ["Owned.sol", "Base.sol", "Main.sol"])
        self.assertEqual(
            files["Main.sol"],
            '//import "Base.sol";\n//import "lib/Owned.sol";\ncontract Main is Base {}\n',
        )
        self.assertEqual(
            files["Base.sol"], '//import "lib/Owned.sol";\ncontract Base is Owned {}\n'
        )

    def test_pairs(self):
        self.write("A.sol", "contract A {}")
        path = self.write("B.sol", 'import "A.sol";\ncontract B {}\r')
        self.assertEqual(
            combine(path, to_object=False),
            [("A.sol", "contract A {}\n"), ("B.sol", '//import "A.sol";\ncontract B {} \n')],
        )

    def test_missing_import(self):
        path = self.write("Main.sol", 'import "Missing.sol";\ncontract Main {}')
        with self.assertRaises(FileNotFoundError):
            combine(path)
