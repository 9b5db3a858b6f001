"""Platform detection for Tilt Dodge.

The game runs in two environments and picks its main loop accordingly:

1. **Desktop (CPython + PyGame)**:
   - Development and normal play
   - Blocking main loop (``dodge_app.main``)

2. **Browser (Pygbag/Emscripten/WASM)**:
   - Detected via ``sys.platform == "emscripten"``
   - Requires async/await so the browser event loop keeps running
     (``dodge_app.async_main``)

Module Variables
----------------
is_browser : bool
    True when running in the browser via pygbag.

is_desktop : bool
    True everywhere else.

Example Usage
-------------
::

    import env

    if env.is_browser:
        asyncio.run(dodge_app.async_main())
    else:
        dodge_app.main()

Notes
-----
Detection happens once at import time and the results are cached in the
module-level variables.
"""

import sys

# Pygbag patches sys.platform to "emscripten"; the platform module is not
# reliable inside WASM.
is_browser = sys.platform == "emscripten"

is_desktop = not is_browser


def get_platform_name():
    """Return a human-readable platform name.

    Returns
    -------
    str
        ``"browser"`` under pygbag, ``"desktop"`` otherwise.

    Examples
    --------
    >>> from env import get_platform_name
    >>> get_platform_name()
    'desktop'
    """
    if is_browser:
        return "browser"
    return "desktop"


def require_desktop():
    """Raise an error if not running in the desktop environment.

    Guards the blocking desktop entry point: under pygbag a blocking loop
    would freeze the browser tab, so it fails fast instead.

    Raises
    ------
    RuntimeError
        If not running in desktop CPython. The message names the detected
        platform.

    Examples
    --------
    >>> from env import require_desktop
    >>> require_desktop()  # no-op on desktop
    """
    if not is_desktop:
        raise RuntimeError(
            "This code requires desktop CPython environment. "
            f"Current platform: {get_platform_name()}"
        )
