"""
Contract writer.

Serializes a synthesized contract to its canonical JSON document.
"""

import json
from pathlib import Path

from ..common.errors import WriteError
from .synthesizer import Contract


def write_contract(contract: Contract, output_path: str) -> None:
    """
    Write the contract to output_path, overwriting any existing file.

    Parent directories are not created: a missing directory is reported as a
    write failure like any other filesystem error.

    Args:
        contract: The contract to write
        output_path: Destination file

    Raises:
        WriteError: If the file cannot be written
    """
    output_file = Path(output_path)
    try:
        with open(output_file, 'w', encoding='utf-8') as f:
            json.dump(contract.to_dict(), f, indent=2, ensure_ascii=False)
            f.write("\n")
    except OSError as e:
        raise WriteError(f"failed to write consumer contract to {output_path}: {e}") from e
