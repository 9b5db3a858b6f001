"""Entry point: ``python main.py`` on desktop, or packaged by pygbag for the web."""

import asyncio

import dodge_app
import env


def main():
    dodge_app.main()


async def async_main():
    await dodge_app.async_main()


def entry_point():
    """Return `async_main` under pygbag and the blocking `main` elsewhere."""
    if env.is_browser:
        return async_main
    return main


if __name__ == "__main__":
    entry = entry_point()
    if entry is async_main:
        asyncio.run(entry())
    else:
        entry()
