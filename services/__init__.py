"""
Authentication core: token-backed sessions and the account lifecycle.
Nothing in this package imports Flask; collaborators are passed in.
"""
