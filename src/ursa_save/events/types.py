class SignalType:
    """Lifecycle signal names published by the save services.

    Signals fire only on success/failure boundaries, never on internal steps.
    """

    SLOT_SAVED = "save:slot:saved"
    SLOT_LOADED = "save:slot:loaded"
    SLOT_DELETED = "save:slot:deleted"
    SLOT_ROLLBACK_CREATED = "save:slot:rollback:created"
    SLOT_ROLLBACK_RESTORED = "save:slot:rollback:restored"
    SLOT_FAILED = "save:slot:failed"
    SLOT_INDEX_RECONCILED = "save:slot:index:reconciled"

    RECOVERY_STARTUP_CHECKED = "save:recovery:startup-checked"
    RECOVERY_RESTORE_APPLIED = "save:recovery:restore-applied"
    RECOVERY_RESET_APPLIED = "save:recovery:reset-applied"
    RECOVERY_FAILED = "save:recovery:failed"

    @classmethod
    def all(cls) -> tuple:
        return tuple(
            value for name, value in vars(cls).items() if name.isupper() and isinstance(value, str)
        )
