"""
Higher-level methods to manage mobile services.

Each public function in this module should:

- perform a complete task, as needed by a script or user action
- validate user input before issuing any remote call
- skip writes where the current remote state already matches the request
"""
