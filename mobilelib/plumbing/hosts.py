"""
Endpoint and protocol constants for the provider's management APIs.
"""

MANAGEMENT = "https://management.core.windows.net"
"""
Default management endpoint, hosting the mobile services and application manager APIs.
"""

SQL_MANAGEMENT = "https://management.database.windows.net:8443"
"""
Default SQL management endpoint, used to remove SQL servers backing a mobile service.
"""

SQL_RESOURCE = "https://management.core.windows.net:8443"
"""
Authority used to reference existing SQL servers and databases in provisioning specs.
"""

SQL_HOSTNAME_SUFFIX = ".database.windows.net"
"""
Suffix appended to a SQL server name to form its hostname.
"""

API_VERSION = "2012-03-01"
"""
Value of the `x-ms-version` header sent with every request.
"""

POLL_INTERVAL = 5.0
"""
Seconds between status checks of a long-running operation.
"""

TIMEOUT = 60.0
"""
Seconds to wait for a response before giving up on a request.
"""
