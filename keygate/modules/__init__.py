"""
Keygate Modules - Black Box Architecture

storage is the leaf; session builds on storage; middleware builds on session
and auth. keyfile, metrics and config stand alone. Modules are imported only
through their package interfaces, never their internals.
"""
