from aa_account_utils.exceptions import \
    ValidationException, ValidationExceptionCode
from aa_account_utils.user_operation.user_operation import \
    FIELD_NAMES, UserOperation

# a user operation either targets an existing account (sender) or deploys
# one (initCode); requiring exactly this pair means "one of them"
MUTUALLY_EXCLUSIVE_FIELDS = frozenset(["sender", "initCode"])


def validate_user_operation(
    user_operation: UserOperation, required_fields: list[str]
) -> bool:
    for field in required_fields:
        if field not in FIELD_NAMES:
            raise ValidationException(
                ValidationExceptionCode.InvalidFields,
                f"Unknown UserOperation field {field}",
                field,
            )

    if set(required_fields) == MUTUALLY_EXCLUSIVE_FIELDS:
        if (
            user_operation.is_set("sender") and
            user_operation.is_set("initCode")
        ):
            raise ValidationException(
                ValidationExceptionCode.ConflictingFields,
                "`sender` and `initCode` cannot exist in one UserOperation",
            )
        if (
            not user_operation.is_set("sender") and
            not user_operation.is_set("initCode")
        ):
            raise ValidationException(
                ValidationExceptionCode.MissingField,
                "sender is missing",
                "sender",
            )
        return True

    for field in required_fields:
        if not user_operation.is_set(field):
            raise ValidationException(
                ValidationExceptionCode.MissingField,
                f"{field} is missing",
                field,
            )

    return True
