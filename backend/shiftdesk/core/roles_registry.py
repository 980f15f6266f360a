# User roles that receive manager-level scheduling notifications (auto-lock etc.)
MANAGER_ROLE_KEYS = ("owner", "admin", "assistant_manager")

# Designation checked by the assistant-manager load warning
ASSISTANT_MANAGER_ROLE_KEY = "assistant_manager"

# Staff types the auto-assigner may schedule (when also living in accommodation)
AUTO_ASSIGN_STAFF_TYPES = ("volunteer", "long_term")
