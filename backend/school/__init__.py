"""School records bounded context: access policy, persistence ports, services."""
