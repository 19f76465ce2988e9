"""Project root entry point for launching the web interface."""

from __future__ import annotations

import os

from lingobatch.web import create_app

DEFAULT_PORT = 3005


def main():
    app = create_app()
    port = int(os.environ.get("PORT") or DEFAULT_PORT)
    app.run(host="0.0.0.0", port=port, debug=os.environ.get("LINGOBATCH_DEBUG") == "1", threaded=True)


if __name__ == "__main__":
    main()
