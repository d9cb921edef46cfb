"""
Drive pathwatch from another process.

Starts the watcher, hands it a temporary file to watch, modifies the file a
few times and prints the report lines that come back.
"""

import os
import signal
import subprocess
import sys
import tempfile
import time


def main():
    with tempfile.TemporaryDirectory() as tmp:
        target = os.path.join(tmp, "demo.txt")
        with open(target, "w") as f:
            f.write("hello\n")

        proc = subprocess.Popen(
            [sys.executable, "-m", "pathwatch.cli"],
            stdin=subprocess.PIPE,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
        )
        try:
            proc.stdin.write(target.encode() + b"\n")
            proc.stdin.flush()
            time.sleep(0.5)

            with open(target, "a") as f:
                f.write("more\n")
            print(proc.stdout.readline().decode().rstrip())

            os.chmod(target, 0o600)
            print(proc.stdout.readline().decode().rstrip())

            # Ask for the list of watched paths on stderr.
            proc.send_signal(signal.SIGUSR1)
            print("watched:", proc.stderr.readline().decode().rstrip())
        finally:
            proc.terminate()
            proc.wait(timeout=5)


if __name__ == "__main__":
    main()
