"""
Patch Document Serializer
=========================

Writes a PatchDocument as the XML consumed by the patch-application tool,
and reads it back.

Format
------
    <?xml version="1.0" encoding="utf-8"?>
    <overlays>
      <overlay name="main_0a" start="34371168">
        <patch location="34377760" value="AQCg4w==" />
        <append>AAAAAAEAAAA=</append>
      </overlay>
    </overlays>

Addresses are decimal attributes and byte arrays are base64, which is how
the patch-application tool's XML reader expects them.
"""

import base64
from pathlib import Path
from typing import Union
from xml.etree import ElementTree

from overlay_asm.document import Patch, PatchDocument, PatchWrite


def _b64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def document_to_element(document: PatchDocument) -> ElementTree.Element:
    """Build the XML tree for a document."""
    root = ElementTree.Element("overlays")
    for patch in document.overlays:
        overlay = ElementTree.SubElement(
            root, "overlay", name=patch.name, start=str(patch.base_address)
        )
        for write in patch.writes:
            ElementTree.SubElement(
                overlay, "patch", location=str(write.location), value=_b64(write.value)
            )
        ElementTree.SubElement(overlay, "append").text = _b64(patch.append_blob)
    return root


def document_to_xml(document: PatchDocument) -> bytes:
    """Serialize a document to UTF-8 XML bytes."""
    root = document_to_element(document)
    ElementTree.indent(root)
    return ElementTree.tostring(root, encoding="utf-8", xml_declaration=True) + b"\n"


def write_document(document: PatchDocument, path: Union[str, Path]) -> None:
    """Write a document to ``path``, creating parent directories."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(document_to_xml(document))


def document_from_xml(data: Union[str, bytes]) -> PatchDocument:
    """
    Parse a document written by document_to_xml.

    Raises:
        ValueError: If the XML does not describe a patch document
    """
    root = ElementTree.fromstring(data)
    if root.tag != "overlays":
        raise ValueError(f"expected <overlays> root, found <{root.tag}>")

    patches = []
    for overlay in root.findall("overlay"):
        writes = tuple(
            PatchWrite(int(node.get("location")), base64.b64decode(node.get("value", "")))
            for node in overlay.findall("patch")
        )
        append = overlay.find("append")
        blob = base64.b64decode(append.text or "") if append is not None else b""
        patches.append(
            Patch(
                name=overlay.get("name", ""),
                base_address=int(overlay.get("start", "0")),
                writes=writes,
                append_blob=blob,
            )
        )
    return PatchDocument(tuple(patches))


def read_document(path: Union[str, Path]) -> PatchDocument:
    """Read a document from ``path``."""
    return document_from_xml(Path(path).read_bytes())
