"""
Core Package.

Contains the build-time rewriting logic:
- Instrumentation Engine
- Function rewriter and its components
- Directive validation and build diagnostics
- Runtime handle injection
"""
