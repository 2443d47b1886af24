"""Request and response contracts for the remote signing service.

Field names follow the service's wire format (Estonian: tekst = text,
sert = certificate, allkiri = signature, isikukood = personal code,
nr = phone number).
"""

from typing import Optional

from pydantic import BaseModel, Field


class Phase1Request(BaseModel):
    """Document and signer certificate; starts remote signing."""

    tekst: str = Field(..., min_length=1, description="Document text")
    sert: Optional[str] = Field(None, description="PEM certificate (omitted for Mobile-ID)")


class Phase1Response(BaseModel):
    """Hash the token must sign."""

    hash: str = Field(..., min_length=1, description="Base64-encoded digest")
    algo: str = Field(..., min_length=1, description="Signature algorithm identifier")


class Phase2Request(BaseModel):
    """Signature produced by the token."""

    allkiri: str = Field(..., min_length=1, description="Base64-encoded signature")


class SigningResult(BaseModel):
    """Completion result of phase 2 and of Mobile-ID signing.

    An empty error string means success.
    """

    error: str = Field(..., description="Empty on success, user-visible message otherwise")
    signedfile: Optional[str] = Field(None, description="Signed container name, if reported")

    @property
    def success(self) -> bool:
        return self.error == ""


class MobileIDRequest(BaseModel):
    """Mobile-ID signing request."""

    isikukood: str = Field(..., description="Personal identification code")
    nr: str = Field(..., description="Mobile-ID phone number")
    tekst: str = Field(..., min_length=1, description="Document text")
