"""``rtmx init``: scaffold an RTM project in the current directory.

Default layout::

    .rtmx/
        config.yaml
        database.csv
        requirements/EXAMPLE/REQ-EX-001.md
        cache/
        .gitignore

``--legacy`` writes the older flat layout instead (``rtmx.yaml`` at the root,
database and specs under ``docs/``).
"""

import logging
import os
from pathlib import Path
from typing import List

from rtmx.cli.output_formatter import status_icon
from rtmx.config import RTMXConfig
from rtmx.database.csv_store import save_database
from rtmx.database.database import Database
from rtmx.database.enums import Priority, Status
from rtmx.database.requirement import Requirement
from rtmx.errors import DatabaseIOError, ExitCodeError

logger = logging.getLogger("rtmx.cli.init")

SAMPLE_SPEC = """\
# REQ-EX-001: Example requirement

## Description
Replace this file with the full specification of the requirement.

## Acceptance Criteria
- The behavior is covered by the test named in the `test_function` column.
- `rtmx verify --update` marks the requirement COMPLETE once that test passes.
"""

GITIGNORE = "cache/\n"


def sample_database(requirements_dir: str) -> Database:
    spec = os.path.join(requirements_dir, "EXAMPLE", "REQ-EX-001.md")
    return Database([
        Requirement(
            req_id="REQ-EX-001",
            category="EXAMPLE",
            subcategory="Sample",
            requirement_text="Example requirement to show the database format",
            target_value="Example passes",
            test_module="example_test.go",
            test_function="TestExample",
            validation_method="Unit Test",
            status=Status.MISSING,
            priority=Priority.HIGH,
            phase=1,
            notes="Replace with real requirements",
            effort_weeks=0.5,
            requirement_file=spec.replace(os.sep, "/"),
        ),
    ])


def _write_text(path: Path, text: str) -> None:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")
    except OSError as exc:
        raise DatabaseIOError(f"failed to write file: {exc.strerror or exc}",
                              path=str(path)) from None


def init_project(root, legacy: bool = False, force: bool = False) -> List[Path]:
    """Create the project files under *root*.

    Returns:
        Paths written, in creation order.

    Raises:
        ExitCodeError: the project already exists and *force* is not set.
    """
    root = Path(root)
    if legacy:
        config_path = root / "rtmx.yaml"
        database = "docs/rtm_database.csv"
        requirements_dir = "docs/requirements"
    else:
        config_path = root / ".rtmx" / "config.yaml"
        database = ".rtmx/database.csv"
        requirements_dir = ".rtmx/requirements"

    db_path = root / database
    existing = [p for p in (config_path, db_path) if p.exists()]
    if existing and not force:
        raise ExitCodeError(1, f"RTM project already initialized ({existing[0]}); "
                               "use --force to overwrite")

    written: List[Path] = []
    config = RTMXConfig({"database": database, "requirements_dir": requirements_dir},
                        project_root=str(root))
    written.append(config.save(config_path))

    written.append(save_database(sample_database(requirements_dir), db_path))

    spec_path = root / requirements_dir / "EXAMPLE" / "REQ-EX-001.md"
    _write_text(spec_path, SAMPLE_SPEC)
    written.append(spec_path)

    if not legacy:
        cache_dir = root / ".rtmx" / "cache"
        cache_dir.mkdir(parents=True, exist_ok=True)
        gitignore = root / ".rtmx" / ".gitignore"
        _write_text(gitignore, GITIGNORE)
        written.append(gitignore)

    logger.info("Initialized RTM project in %s", root)
    return written


def cmd_init(args) -> int:
    root = Path(os.getcwd())
    written = init_project(root, legacy=args.legacy, force=args.force)
    for path in written:
        print(f"  {status_icon('COMPLETE')} {os.path.relpath(path, root)}")
    print()
    print("RTM project initialized. Next steps:")
    print("  1. Add requirements to the database")
    print("  2. Link each one to a test via the test_function column")
    print("  3. Run 'rtmx status' and 'rtmx verify --update'")
    return 0


def register(sub) -> None:
    p_init = sub.add_parser("init", help="Initialize an RTM project")
    p_init.add_argument("--legacy", action="store_true",
                        help="Use rtmx.yaml and docs/ instead of .rtmx/")
    p_init.add_argument("--force", action="store_true", help="Overwrite existing files")
    p_init.set_defaults(func=cmd_init)
