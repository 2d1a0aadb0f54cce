# =========================================================================
# CUSTOM EXCEPTIONS
# =========================================================================

class LeadToOrderError(Exception):
    """Base exception for Lead to Order errors"""
    pass


class SheetError(LeadToOrderError):
    """Remote sheet endpoint could not be used"""
    pass


class SheetAPIError(SheetError):
    """Sheet endpoint answered with an HTTP error"""

    def __init__(self, message: str, status_code: int = None):
        super().__init__(message)
        self.status_code = status_code


class SheetConnectionError(SheetError):
    """Sheet endpoint could not be reached"""
    pass


class SheetTimeoutError(SheetError):
    """Sheet endpoint did not answer in time"""
    pass


class SheetResponseError(SheetError):
    """Sheet endpoint returned something that is not JSON"""
    pass


class SchemaMismatchError(LeadToOrderError):
    """Sheet columns do not match the expected layout"""
    pass


class NotAuthenticated(LeadToOrderError):
    """No user is logged in"""
    pass
