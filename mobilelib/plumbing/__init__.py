"""
Low-level APIs for fine-grained service management.

Each public function in this module should:

- perform a single remote call (or a fixed read-modify-write of one resource)
- report failures as a `MobileError` passed to its callback, rather than raising
- accept a `Context` as its first argument rather than creating its own

Each function also falls into one of two groups:

- getters (prefixed with `get_` or `list_`, passes the decoded value, does not modify state)
- actions (passes a `Result` object, may modify state)
"""
