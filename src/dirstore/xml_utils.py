"""S3 XML rendering and parsing helpers for DirStore."""

import xml.etree.ElementTree as ET
from typing import Any
from xml.sax.saxutils import escape as _sax_escape

from fastapi.responses import Response

from dirstore.errors import InvalidArgument, InvalidPartOrder, MalformedXML

S3_XMLNS = "http://s3.amazonaws.com/doc/2006-03-01/"
XSI_XMLNS = "http://www.w3.org/2001/XMLSchema-instance"
_XML_DECL = '<?xml version="1.0" encoding="UTF-8"?>'


def _escape_xml(value: Any) -> str:
    return _sax_escape(str(value))


def render_error(
    code: str,
    message: str,
    resource: str = "",
    request_id: str = "",
    extra_fields: dict[str, str] | None = None,
) -> str:
    """Render an S3 XML error response body.

    The Error element has NO XML namespace (unlike success responses).

    Args:
        code: The S3 error code (e.g. "NoSuchBucket").
        message: Human-readable error message.
        resource: The resource that triggered the error.
        request_id: An opaque request identifier.
        extra_fields: Additional XML elements to include.

    Returns:
        An XML string conforming to S3 error response format.
    """
    parts = [
        _XML_DECL,
        "<Error>",
        f"<Code>{_escape_xml(code)}</Code>",
        f"<Message>{_escape_xml(message)}</Message>",
    ]
    if resource:
        parts.append(f"<Resource>{_escape_xml(resource)}</Resource>")
    if request_id:
        parts.append(f"<RequestId>{_escape_xml(request_id)}</RequestId>")
    for key, value in (extra_fields or {}).items():
        parts.append(f"<{key}>{_escape_xml(value)}</{key}>")
    parts.append("</Error>")
    return "\n".join(parts)


def xml_response(body: str, status: int = 200, headers: dict[str, str] | None = None) -> Response:
    """Wrap an XML body string in a Response with media type application/xml."""
    return Response(
        content=body,
        status_code=status,
        media_type="application/xml",
        headers=headers,
    )


def render_list_buckets(
    owner_id: str,
    owner_display_name: str,
    buckets: list[dict[str, Any]],
) -> str:
    """Render a ListAllMyBucketsResult.

    Args:
        owner_id: The canonical user ID of the bucket owner.
        owner_display_name: Display name of the owner.
        buckets: Dicts with 'name' and 'created_at' keys.
    """
    parts = [
        _XML_DECL,
        f'<ListAllMyBucketsResult xmlns="{S3_XMLNS}">',
        "<Owner>",
        f"<ID>{_escape_xml(owner_id)}</ID>",
        f"<DisplayName>{_escape_xml(owner_display_name)}</DisplayName>",
        "</Owner>",
        "<Buckets>",
    ]
    for b in buckets:
        parts.append("<Bucket>")
        parts.append(f"<Name>{_escape_xml(b.get('name', ''))}</Name>")
        parts.append(f"<CreationDate>{_escape_xml(b.get('created_at', ''))}</CreationDate>")
        parts.append("</Bucket>")
    parts.append("</Buckets>")
    parts.append("</ListAllMyBucketsResult>")
    return "\n".join(parts)


def render_list_objects(
    name: str,
    prefix: str,
    delimiter: str,
    max_keys: int,
    is_truncated: bool,
    contents: list[dict[str, Any]],
    common_prefixes: list[str],
    marker: str = "",
    next_marker: str | None = None,
) -> str:
    """Render a ListBucketResult (ListObjects v1)."""
    parts = [
        _XML_DECL,
        f'<ListBucketResult xmlns="{S3_XMLNS}">',
        f"<Name>{_escape_xml(name)}</Name>",
        f"<Prefix>{_escape_xml(prefix)}</Prefix>",
        f"<Marker>{_escape_xml(marker)}</Marker>",
    ]
    if delimiter:
        parts.append(f"<Delimiter>{_escape_xml(delimiter)}</Delimiter>")
    parts.append(f"<MaxKeys>{max_keys}</MaxKeys>")
    parts.append(f"<IsTruncated>{str(is_truncated).lower()}</IsTruncated>")
    if is_truncated and next_marker:
        parts.append(f"<NextMarker>{_escape_xml(next_marker)}</NextMarker>")

    for obj in contents:
        parts.append("<Contents>")
        parts.append(f"<Key>{_escape_xml(obj.get('key', ''))}</Key>")
        parts.append(f"<LastModified>{_escape_xml(obj.get('last_modified', ''))}</LastModified>")
        parts.append(f"<ETag>{_escape_xml(obj.get('etag', ''))}</ETag>")
        parts.append(f"<Size>{obj.get('size', 0)}</Size>")
        parts.append("<StorageClass>STANDARD</StorageClass>")
        parts.append("</Contents>")

    for cp in common_prefixes:
        parts.append("<CommonPrefixes>")
        parts.append(f"<Prefix>{_escape_xml(cp)}</Prefix>")
        parts.append("</CommonPrefixes>")

    parts.append("</ListBucketResult>")
    return "\n".join(parts)


def render_acl(acl: dict[str, Any]) -> str:
    """Render an ACL dict as AccessControlPolicy XML."""
    owner = acl.get("owner", {})
    parts = [
        _XML_DECL,
        f'<AccessControlPolicy xmlns="{S3_XMLNS}">',
        "<Owner>",
        f"<ID>{_escape_xml(owner.get('id', ''))}</ID>",
        f"<DisplayName>{_escape_xml(owner.get('display_name', ''))}</DisplayName>",
        "</Owner>",
        "<AccessControlList>",
    ]

    for grant in acl.get("grants", []):
        grantee = grant.get("grantee", {})
        grantee_type = grantee.get("type", "CanonicalUser")
        parts.append("<Grant>")
        parts.append(f'<Grantee xmlns:xsi="{XSI_XMLNS}" xsi:type="{_escape_xml(grantee_type)}">')
        if grantee_type == "Group":
            parts.append(f"<URI>{_escape_xml(grantee.get('uri', ''))}</URI>")
        else:
            parts.append(f"<ID>{_escape_xml(grantee.get('id', ''))}</ID>")
            parts.append(f"<DisplayName>{_escape_xml(grantee.get('display_name', ''))}</DisplayName>")
        parts.append("</Grantee>")
        parts.append(f"<Permission>{_escape_xml(grant.get('permission', ''))}</Permission>")
        parts.append("</Grant>")

    parts.append("</AccessControlList>")
    parts.append("</AccessControlPolicy>")
    return "\n".join(parts)


def render_copy_object_result(etag: str, last_modified: str) -> str:
    parts = [
        _XML_DECL,
        f'<CopyObjectResult xmlns="{S3_XMLNS}">',
        f"<ETag>{_escape_xml(etag)}</ETag>",
        f"<LastModified>{_escape_xml(last_modified)}</LastModified>",
        "</CopyObjectResult>",
    ]
    return "\n".join(parts)


def render_initiate_multipart_upload(bucket: str, key: str, upload_id: str) -> str:
    parts = [
        _XML_DECL,
        f'<InitiateMultipartUploadResult xmlns="{S3_XMLNS}">',
        f"<Bucket>{_escape_xml(bucket)}</Bucket>",
        f"<Key>{_escape_xml(key)}</Key>",
        f"<UploadId>{_escape_xml(upload_id)}</UploadId>",
        "</InitiateMultipartUploadResult>",
    ]
    return "\n".join(parts)


def render_complete_multipart_upload(location: str, bucket: str, key: str, etag: str) -> str:
    parts = [
        _XML_DECL,
        f'<CompleteMultipartUploadResult xmlns="{S3_XMLNS}">',
        f"<Location>{_escape_xml(location)}</Location>",
        f"<Bucket>{_escape_xml(bucket)}</Bucket>",
        f"<Key>{_escape_xml(key)}</Key>",
        f"<ETag>{_escape_xml(etag)}</ETag>",
        "</CompleteMultipartUploadResult>",
    ]
    return "\n".join(parts)


def parse_complete_multipart_upload(body: bytes) -> list[int]:
    """Extract the ordered part numbers from a CompleteMultipartUpload body.

    An empty body yields an empty list (the caller then uses every stored
    part). The document may or may not carry the S3 namespace.

    Raises:
        MalformedXML: If the body is not well-formed or a Part lacks a number.
        InvalidArgument: If a part number is not an integer.
        InvalidPartOrder: If part numbers are not strictly ascending.
    """
    if not body.strip():
        return []
    try:
        root = ET.fromstring(body)
    except ET.ParseError:
        raise MalformedXML()

    ns = ""
    if root.tag.startswith("{"):
        ns = root.tag[: root.tag.index("}") + 1]

    numbers: list[int] = []
    for part_elem in root.findall(f"{ns}Part"):
        pn_elem = part_elem.find(f"{ns}PartNumber")
        if pn_elem is None or pn_elem.text is None:
            raise MalformedXML("Missing PartNumber element")
        try:
            pn = int(pn_elem.text.strip())
        except ValueError:
            raise InvalidArgument(f"Invalid part number: {pn_elem.text.strip()}")
        if numbers and pn <= numbers[-1]:
            raise InvalidPartOrder()
        numbers.append(pn)
    return numbers
