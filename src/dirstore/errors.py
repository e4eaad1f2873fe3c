"""S3-compatible error definitions for DirStore."""


class S3Error(Exception):
    """An S3-compatible error with code, message, and HTTP status.

    Attributes:
        code: The S3 error code string (e.g. "NoSuchBucket").
        message: Human-readable error description.
        http_status: The HTTP status code to return.
        extra_fields: Additional key-value pairs to include in the XML error response.
    """

    def __init__(
        self,
        code: str,
        message: str,
        http_status: int = 400,
        extra_fields: dict[str, str] | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.http_status = http_status
        self.extra_fields = extra_fields or {}


# -- Request routing errors ---------------------------------------------------


class UnsupportedOperation(S3Error):
    """The request shape maps to no supported operation (root-level PUT/DELETE)."""

    def __init__(
        self, message: str = "The specified method is not allowed against this resource."
    ) -> None:
        super().__init__(code="MethodNotAllowed", message=message, http_status=405)


class UnrecognizedAction(S3Error):
    """An action reached an executor that has no handler for its tag."""

    def __init__(self, tag: object = "") -> None:
        super().__init__(
            code="InternalError",
            message=f"Unrecognized action: {tag}",
            http_status=500,
        )
        self.tag = tag


# -- Storage errors -----------------------------------------------------------


class NoSuchBucket(S3Error):
    """The specified bucket does not exist."""

    def __init__(self, bucket: str = "") -> None:
        super().__init__(
            code="NoSuchBucket",
            message="The specified bucket does not exist.",
            http_status=404,
            extra_fields={"BucketName": bucket} if bucket else {},
        )


class NoSuchKey(S3Error):
    """The specified key does not exist."""

    def __init__(self, key: str = "") -> None:
        super().__init__(
            code="NoSuchKey",
            message="The specified key does not exist.",
            http_status=404,
            extra_fields={"Key": key} if key else {},
        )


class NoSuchUpload(S3Error):
    """The specified multipart upload does not exist."""

    def __init__(self, upload_id: str = "") -> None:
        super().__init__(
            code="NoSuchUpload",
            message="The specified multipart upload does not exist.",
            http_status=404,
            extra_fields={"UploadId": upload_id} if upload_id else {},
        )


class InvalidArgument(S3Error):
    """An invalid argument was provided."""

    def __init__(self, message: str = "Invalid Argument") -> None:
        super().__init__(code="InvalidArgument", message=message, http_status=400)


class InvalidBucketName(S3Error):
    """The specified bucket name is not valid."""

    def __init__(self, bucket: str = "") -> None:
        super().__init__(
            code="InvalidBucketName",
            message="The specified bucket is not valid.",
            http_status=400,
            extra_fields={"BucketName": bucket} if bucket else {},
        )


class InvalidPart(S3Error):
    """One or more of the specified parts could not be found."""

    def __init__(
        self, message: str = "One or more of the specified parts could not be found."
    ) -> None:
        super().__init__(code="InvalidPart", message=message, http_status=400)


class InvalidPartOrder(S3Error):
    """The list of parts was not in ascending order."""

    def __init__(self, message: str = "The list of parts was not in ascending order.") -> None:
        super().__init__(code="InvalidPartOrder", message=message, http_status=400)


class MalformedXML(S3Error):
    """The XML provided was not well-formed or did not validate."""

    def __init__(
        self,
        message: str = "The XML you provided was not well-formed or did not validate against our published schema.",
    ) -> None:
        super().__init__(code="MalformedXML", message=message, http_status=400)


class KeyPathConflict(S3Error):
    """The key collides with an existing key on the directory tree.

    Keys are stored as paths, so ``a`` and ``a/c`` cannot coexist.
    """

    def __init__(self, bucket: str = "", key: str = "") -> None:
        super().__init__(
            code="KeyPathConflict",
            message="The key conflicts with an existing key that is a prefix or extension of it.",
            http_status=409,
            extra_fields={"Key": key} if key else {},
        )
        self.bucket = bucket
