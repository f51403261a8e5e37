"""
Scripted fields conversion.

A bundle folder may define its fields programmatically in ``fields.js``.
The remote store only accepts the static ``fields.json`` descriptor, so the
script is evaluated with Node and its result written out as JSON before the
bundle is uploaded.

``fields.js`` may export an array of field definitions, a function taking the
user-supplied options list and returning such an array, or a promise of
either.

The converted descriptor is written into a staging directory that mirrors the
source tree, so ``<src>/hero.module/fields.js`` becomes
``<staging>/hero.module/fields.json`` and maps onto the same destination
folder as the original.
"""

import json
import os
import subprocess
import tempfile
from typing import List, Optional, Sequence

from folderpush.uploader.errors import FieldsConversionError
from folderpush.utils.logging import get_logger

logger = get_logger(__name__)

SCRIPTED_FIELDS_FILENAME = "fields.js"
STATIC_FIELDS_FILENAME = "fields.json"

EVALUATOR_OUTPUT_FILENAME = "fields.output.json"

CONVERSION_TIMEOUT_SECONDS = 60

# Evaluated with `node -e`; argv[1] is the script path, argv[2] the output
# file, argv[3] the options JSON. Console output from the script goes to stderr.
_NODE_EVALUATOR = """
const fs = require("fs");
const util = require("util");
const [fieldsPath, outputPath, optionsJson] = process.argv.slice(1);
const toStderr = (...args) => process.stderr.write(util.format(...args) + "\\n");
console.log = console.info = console.debug = toStderr;
Promise.resolve()
  .then(() => {
    const options = JSON.parse(optionsJson || "[]");
    const exported = require(fieldsPath);
    return typeof exported === "function" ? exported(options) : exported;
  })
  .then((fields) => {
    fs.writeFileSync(outputPath, JSON.stringify(fields === undefined ? null : fields));
  })
  .catch((err) => {
    process.stderr.write(String((err && err.stack) || err));
    process.exit(1);
  });
"""


def evaluate_fields_js(
    fields_path: str,
    options: Sequence[str] = (),
    node_binary: str = "node",
) -> List[dict]:
    """
    Run a scripted fields file and return the field definitions it produces.

    Raises:
        FieldsConversionError: If Node is missing, the script fails or times
            out, or it does not produce a JSON array
    """
    fields_path = os.path.abspath(fields_path)

    with tempfile.TemporaryDirectory(prefix="folderpush-fields-") as output_dir:
        output_path = os.path.join(output_dir, EVALUATOR_OUTPUT_FILENAME)
        command = [
            node_binary,
            "-e",
            _NODE_EVALUATOR,
            fields_path,
            output_path,
            json.dumps(list(options)),
        ]

        try:
            completed = subprocess.run(
                command,
                cwd=os.path.dirname(fields_path),
                capture_output=True,
                text=True,
                timeout=CONVERSION_TIMEOUT_SECONDS,
                check=False,
            )
        except FileNotFoundError as error:
            raise FieldsConversionError(
                f"Node executable not found ({node_binary}); it is required to convert {SCRIPTED_FIELDS_FILENAME}",
                fields_path,
            ) from error
        except subprocess.TimeoutExpired as error:
            raise FieldsConversionError(
                f"Evaluation timed out after {CONVERSION_TIMEOUT_SECONDS}s", fields_path
            ) from error

        if completed.returncode != 0:
            message = completed.stderr.strip() or f"node exited with status {completed.returncode}"
            raise FieldsConversionError(message, fields_path)

        if completed.stderr.strip():
            logger.debug(f"{SCRIPTED_FIELDS_FILENAME} output: {completed.stderr.strip()}")

        try:
            with open(output_path, "r", encoding="utf-8") as f:
                fields = json.load(f)
        except FileNotFoundError as error:
            raise FieldsConversionError("Evaluator produced no output", fields_path) from error
        except json.JSONDecodeError as error:
            raise FieldsConversionError(f"Output is not valid JSON: {error}", fields_path) from error

    if not isinstance(fields, list):
        raise FieldsConversionError(
            f"Expected an array of fields, got {type(fields).__name__}", fields_path
        )

    return fields


def convert_fields_js(
    fields_path: str,
    options: Optional[Sequence[str]],
    staging_root: str,
    source_root: str,
    node_binary: str = "node",
) -> str:
    """
    Convert a scripted fields file into a static descriptor.

    Args:
        fields_path: Path of fields.js under source_root
        options: Options list passed to an exported fields function
        staging_root: Directory the converted tree is written into
        source_root: Root of the tree being uploaded
        node_binary: Node executable to evaluate the script with

    Returns:
        Path of the written fields.json inside staging_root

    Raises:
        FieldsConversionError: If evaluation fails
    """
    fields = evaluate_fields_js(fields_path, options or (), node_binary=node_binary)

    relative_dir = os.path.relpath(os.path.dirname(os.path.abspath(fields_path)), source_root)
    output_dir = os.path.normpath(os.path.join(staging_root, relative_dir))
    os.makedirs(output_dir, exist_ok=True)

    output_path = os.path.join(output_dir, STATIC_FIELDS_FILENAME)
    with open(output_path, "w", encoding="utf-8") as f:
        json.dump(fields, f, indent=2)

    logger.debug(f"Wrote {len(fields)} field definitions to {output_path}")
    return output_path
