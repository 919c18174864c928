from __future__ import annotations

import argparse
import shutil
import subprocess
import sys
from pathlib import Path

APP_NAME = "DairyDashboard"


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description=f"Build the {APP_NAME} desktop bundle with PyInstaller.")
    parser.add_argument("--no-clean", action="store_true", help="keep previous build/ and dist/ folders")
    args = parser.parse_args(argv)

    project_root = Path(__file__).resolve().parent
    spec_path = project_root / f"{APP_NAME}.spec"
    if not spec_path.exists():
        raise SystemExit(f"{spec_path.name} was not found in {project_root}.")

    dist_dir = project_root / "dist"
    if not args.no_clean:
        for path in (project_root / "build", dist_dir):
            if path.exists():
                shutil.rmtree(path)

    cmd = [sys.executable, "-m", "PyInstaller", str(spec_path)]
    if not args.no_clean:
        cmd.insert(3, "--clean")
    print("Running:", " ".join(cmd))
    subprocess.run(cmd, check=True)

    bundle_dir = dist_dir / APP_NAME
    # The frozen app reads .env from the folder holding the executable.
    env_template = project_root / ".env.example"
    if env_template.exists():
        shutil.copy2(env_template, bundle_dir / ".env.example")
    print("Build finished. See:", bundle_dir)


if __name__ == "__main__":
    main()
