from __future__ import annotations

import argparse

from barlib.app import BarApp
from barlib.configLoader import loadConfigFile
from barlib.utils import parsePath


def main() -> int:
    parser = argparse.ArgumentParser(description="Run executable scripts and show their output as menus.")
    parser.add_argument("--config", default="~/.scriptbar/scriptbar.toml")
    parser.add_argument("--plugins", default=None, help="plugin directory (overrides the config file)")
    args = parser.parse_args()

    config = loadConfigFile(args.config)
    pluginDir = parsePath(args.plugins)
    if pluginDir is not None:
        config.pluginDirectory = pluginDir

    app = BarApp(config)
    app.run()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
