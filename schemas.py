"""
Marshmallow schemas for Xtream connection settings

Loading is lenient: missing credentials become empty strings so a client can
still be built for credential-discovery flows.
"""
from marshmallow import EXCLUDE, Schema, ValidationError, fields, post_load, pre_load, validates

# ============================================================================
# Xtream Config Schemas
# ============================================================================


class XtreamConfigSchema(Schema):
    """Schema for a raw {url, username, password} config map"""

    url = fields.Str(load_default="", allow_none=True)
    username = fields.Str(load_default="", allow_none=True)
    password = fields.Str(load_default="", allow_none=True)
    fallback_urls = fields.List(fields.Raw(), load_default=list)

    class Meta:
        unknown = EXCLUDE  # Playlist configs carry extra provider keys

    @pre_load
    def coerce(self, data, **kwargs):
        """Stringify numeric credentials and drop a fallback_urls that is not a list"""
        data = dict(data)
        for key in ("url", "username", "password"):
            value = data.get(key)
            if value is not None and not isinstance(value, str):
                data[key] = str(value)
        if "fallback_urls" in data and not isinstance(data["fallback_urls"], list):
            data["fallback_urls"] = []
        return data

    @validates("url")
    def validate_url(self, value, **kwargs):
        """Reject whitespace inside the server address"""
        if value and any(ch.isspace() for ch in value.strip()):
            raise ValidationError("Invalid server format")

    @post_load
    def normalize(self, data, **kwargs):
        """Replace None with empty strings and trim the server address"""
        for key in ("url", "username", "password"):
            if data.get(key) is None:
                data[key] = ""
        data["url"] = data["url"].strip().rstrip("/")
        return data
