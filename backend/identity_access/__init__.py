"""Identity and access: roles, actors, credential verification, profiles, sessions."""
