"""Run the application initialisation in headless mode and capture its output.

A child Python process imports :mod:`sinkhole.main` and runs the scene
without opening any window.  Running as a subprocess ensures OS-level
stdout/stderr (for example messages emitted by Qt's C++ layer) end up in the
capture files instead of leaking to the console.

Usage:
  python run_headless_capture.py

Outputs:
  - run_output.txt : combined stdout+stderr from the child run
  - run_exception.txt : the full output when the child exited with an error
"""
from __future__ import annotations

import os
import subprocess
import sys
import traceback

# Force Qt to use the offscreen platform in case the child touches it
os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

ROOT = os.path.dirname(os.path.abspath(__file__))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

out_file = os.path.join(ROOT, "run_output.txt")
err_file = os.path.join(ROOT, "run_exception.txt")


def _run_child_mode() -> int:
    try:
        import sinkhole.main as m

        print("Imported sinkhole.main OK")
        rc = m.main(["--headless", "--debug", "--frames", "240", "--with-sink", "--with-spiral", "--seed", "7"])
        print("m.main() returned", rc)
        return int(rc) if isinstance(rc, int) else 0
    except SystemExit as se:
        print("m.main() raised SystemExit:", se)
        return se.code if isinstance(se.code, int) else 1
    except Exception:
        traceback.print_exc()
        return 2


def _run_parent_mode() -> None:
    env = dict(os.environ)
    env["RUN_AS_CHILD"] = "1"

    proc = subprocess.run([sys.executable, __file__], env=env, capture_output=True, text=True)

    combined = proc.stdout + ("\n" + proc.stderr if proc.stderr else "")
    with open(out_file, "w", encoding="utf-8") as outf:
        outf.write(combined)

    if proc.returncode != 0:
        with open(err_file, "w", encoding="utf-8") as errf:
            errf.write(combined)
        print("Child process failed; see", err_file)
    else:
        print("Run completed without exception; see", out_file)


if __name__ == "__main__":
    if os.environ.get("RUN_AS_CHILD") == "1":
        sys.exit(_run_child_mode())
    else:
        _run_parent_mode()
