"""
Mock Object Storage Client.

Purpose:
- In-memory stand-in for the boto3 S3 client used by DocumentArchiver
- Does NOT make network calls
- Signed URLs use a memory:// scheme and carry the requested TTL

Only the two calls the archiver needs are implemented.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class InMemoryS3Client:
    def __init__(self, *, fail_put: Optional[Exception] = None) -> None:
        self.objects: Dict[str, Dict[str, Any]] = {}
        self.fail_put = fail_put
        self.signed: list = []

    def put_object(self, *, Bucket: str, Key: str, Body: bytes, ContentType: str) -> Dict[str, Any]:
        if self.fail_put is not None:
            raise self.fail_put
        self.objects[f"{Bucket}/{Key}"] = {"body": Body, "content_type": ContentType}
        return {"ETag": f'"{len(Body)}"'}

    def generate_presigned_url(self, ClientMethod: str, Params: Dict[str, str], ExpiresIn: int) -> str:
        self.signed.append({"method": ClientMethod, "params": dict(Params), "expires_in": ExpiresIn})
        return f"memory://{Params['Bucket']}/{Params['Key']}?method={ClientMethod}&expires={ExpiresIn}"
