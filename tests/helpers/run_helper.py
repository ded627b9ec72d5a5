"""Minimal JSON-over-stdio helper used by the sandbox tests."""

import json
import os
import sys
import time


def main():
    request = json.loads(sys.stdin.read())
    function, args = request["function"], request["args"]

    if function == "echo":
        result = args
    elif function == "env":
        result = os.environ.get(args[0])
    elif function == "sleep":
        time.sleep(args[0])
        result = None
    elif function == "garbage":
        sys.stdout.write("this is not json")
        return 0
    elif function == "error":
        sys.stdout.write(json.dumps({"error": args[0]}))
        return 1
    else:
        sys.stdout.write(json.dumps({"error": f"Invalid function {function}"}))
        return 1

    sys.stdout.write(json.dumps({"result": result}))
    return 0


if __name__ == "__main__":
    sys.exit(main())
