# procscribe/tools/__init__.py
"""Package marker + explicit export of the diagram renderer."""
from procscribe.tools.drawio_render import DrawioRender, render_diagram  # noqa: F401
