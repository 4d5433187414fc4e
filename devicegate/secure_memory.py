"""Zeroable buffers for derived key material.

Python gives no guarantee that secrets are erased from memory: bytes objects
are immutable and may be copied by the interpreter. Holding the derived key
in a bytearray and overwriting it on sign-out shrinks the window in which a
usable key sits in the heap. This is best effort only.
"""

from typing import Optional


def secure_zero(data: bytearray) -> None:
    """Overwrite a bytearray with zeros in place.

    Raises:
        TypeError: If data is not a bytearray
    """
    if not isinstance(data, bytearray):
        raise TypeError(f"Cannot securely zero type: {type(data)}")
    for i in range(len(data)):
        data[i] = 0


class SecureBytes:
    """Bytearray wrapper that can be explicitly zeroed.

    Usage:
        with SecureBytes(key) as secure_key:
            use(secure_key.get())
    """

    __slots__ = ("_data", "_cleared")

    def __init__(self, data: Optional[bytes] = None):
        self._data = bytearray(data or b"")
        self._cleared = False

    def get(self) -> bytes:
        """Return an immutable copy of the data.

        Raises:
            RuntimeError: If the data has already been cleared
        """
        if self._cleared:
            raise RuntimeError("Secure data has already been cleared")
        return bytes(self._data)

    def clear(self) -> None:
        """Zero and release the data. Idempotent."""
        if not self._cleared:
            secure_zero(self._data)
            self._data = bytearray()
            self._cleared = True

    @property
    def is_cleared(self) -> bool:
        return self._cleared

    def __len__(self) -> int:
        return 0 if self._cleared else len(self._data)

    def __enter__(self) -> "SecureBytes":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.clear()

    def __repr__(self) -> str:
        if self._cleared:
            return "SecureBytes(<cleared>)"
        return f"SecureBytes(<{len(self._data)} bytes>)"
