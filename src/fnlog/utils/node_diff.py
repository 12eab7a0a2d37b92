"""
AST Node Serialization for Trace Events.

Converts detached LibCST nodes into source text "in vacuum", so the tracer can
record an exit before and after instrumentation without rendering the whole
module.
"""

import libcst as cst

# A dummy module used as a context to render detached nodes.
_RENDER_CTX = cst.parse_module("")


def capture_node_source(node: cst.CSTNode) -> str:
  """
  Renders a LibCST node into its Python source code string representation.

  Args:
      node: The CST node to serialise.

  Returns:
      str: The Python code string.
  """
  try:
    return _RENDER_CTX.code_for_node(node)
  except Exception:
    # Partially built nodes (e.g. missing required children) cannot render
    return f"<Unrepresentable Node: {type(node).__name__}>"
