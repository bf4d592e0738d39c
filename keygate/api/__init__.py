"""HTTP transport for the keygate entitlement core."""
