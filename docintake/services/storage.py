"""Disk storage for uploaded documents."""

import logging
import os
import pathlib
import time

import fastapi

from docintake import config as config_lib
from docintake.core import errors
from docintake.core import utils
from docintake.schemas import intake as intake_lib

Path = pathlib.Path
UploadFile = fastapi.UploadFile
Settings = config_lib.Settings
FileDescriptor = intake_lib.FileDescriptor
IntakeValidationError = errors.IntakeValidationError

_CHUNK_SIZE = 1024 * 1024


class FileStore:
  """Stores uploads under a single directory with collision-resistant names."""

  def __init__(self, settings: Settings):
    self.upload_dir = Path(settings.UPLOAD_DIR)
    self.max_file_bytes = settings.max_file_bytes
    self.max_files = settings.MAX_FILES
    self.allowed_mimes = settings.allowed_mimes

  def ensure_upload_dir(self) -> Path:
    self.upload_dir.mkdir(parents=True, exist_ok=True)
    return self.upload_dir

  def path_for(self, stored_as: str) -> Path:
    return self.upload_dir / stored_as

  def storage_name(self, original_name: str) -> str:
    """Returns `<safe base>_<epoch ms><ext>` that is not yet taken on disk."""
    base, ext = os.path.splitext(os.path.basename(original_name))
    safe_base = utils.safe_filename_base(base) or "file"
    timestamp = int(time.time() * 1000)
    while True:
      name = f"{safe_base}_{timestamp}{ext}"
      if not self.path_for(name).exists():
        return name
      timestamp += 1

  def check_type(self, mimetype: str) -> None:
    if self.allowed_mimes and mimetype not in self.allowed_mimes:
      raise IntakeValidationError(f"Unsupported file type: {mimetype}")

  async def save(self, upload: UploadFile) -> FileDescriptor:
    """Streams one upload to disk, enforcing type and size limits.

    Raises:
      IntakeValidationError: The type is not allowed or the file is too big.
        Nothing is left on disk in that case.
    """
    original_name = upload.filename or "file"
    mimetype = upload.content_type or "application/octet-stream"
    self.check_type(mimetype)

    self.ensure_upload_dir()
    stored_as = self.storage_name(original_name)
    target = self.path_for(stored_as)
    size = 0
    try:
      with target.open("wb") as out:
        while True:
          chunk = await upload.read(_CHUNK_SIZE)
          if not chunk:
            break
          size += len(chunk)
          if size > self.max_file_bytes:
            raise IntakeValidationError(f"File too large: {original_name}")
          out.write(chunk)
    except Exception:
      target.unlink(missing_ok=True)
      raise

    logging.info("INTAKE: Stored %s as %s (%d bytes).", original_name, stored_as, size)
    return FileDescriptor(
        originalname=original_name,
        mimetype=mimetype,
        size=size,
        stored_as=stored_as,
        path=str(target),
    )

  async def save_all(self, uploads: list[UploadFile]) -> list[FileDescriptor]:
    """Stores every upload, or none of them if one is rejected."""
    if len(uploads) > self.max_files:
      raise IntakeValidationError(
          f"Too many files: at most {self.max_files} are accepted"
      )
    stored: list[FileDescriptor] = []
    try:
      for upload in uploads:
        stored.append(await self.save(upload))
    except Exception:
      self.discard(stored)
      raise
    return stored

  def discard(self, files: list[FileDescriptor]) -> None:
    for descriptor in files:
      Path(descriptor.path).unlink(missing_ok=True)
