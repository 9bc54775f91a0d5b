"""
Default file classifier: maps file names to a coarse file type by extension.
"""
import os
from enum import Enum


class FileType(Enum):
    SOURCE = 'src'
    BINARY = 'bin'
    DOC = 'doc'
    TRANSLATION = 'trans'
    OTHER = 'other'


SOURCE_EXTENSIONS = {
    '.c', '.cc', '.cpp', '.cxx', '.h', '.hh', '.hpp', '.hxx', '.java', '.py', '.rb', '.pl', '.pm',
    '.php', '.js', '.ts', '.go', '.rs', '.cs', '.m', '.mm', '.scala', '.kt', '.sh', '.el', '.sql',
    '.y', '.l', '.S', '.s', '.ui', '.xs',
}
DOC_EXTENSIONS = {
    '.txt', '.html', '.htm', '.tex', '.sgml', '.docbook', '.md', '.rst', '.texi', '.texinfo', '.man',
    '.1', '.3', '.5', '.8', '.doc', '.odt', '.rtf',
}
TRANSLATION_EXTENSIONS = {'.po', '.pot'}
BINARY_EXTENSIONS = {
    '.png', '.jpg', '.jpeg', '.gif', '.bmp', '.ico', '.svgz', '.o', '.so', '.a', '.dll', '.exe',
    '.class', '.jar', '.zip', '.gz', '.tgz', '.bz2', '.xz', '.tar', '.pdf', '.mo', '.gmo', '.ogg',
    '.wav', '.mp3', '.ttf', '.otf',
}
# text files that are neither source, docs nor translations
OTHER_TEXT_EXTENSIONS = {'.xml', '.json', '.yaml', '.yml', '.cfg', '.ini', '.in', '.am', '.ac', '.cmake', '.css', '.svg', '.desktop'}
TEXT_FILENAMES = {'makefile', 'readme', 'changelog', 'authors', 'copying', 'news', 'todo', 'install'}

# binary formats with a doc-like role, e.g. .doc, are still not diffed
_NON_TEXT_DOCS = {'.doc', '.odt'}


def _extension(filename: str) -> str:
    base = os.path.basename(filename or '')
    _, ext = os.path.splitext(base)
    # case matters for assembler '.S'; everything else is compared lower-case
    return ext if ext == '.S' else ext.lower()


class FileTypeMatcher:
    """Classifies a file name by extension. Stateless; one instance can be shared."""

    def classify(self, filename: str) -> FileType:
        ext = _extension(filename)
        if ext in TRANSLATION_EXTENSIONS:
            return FileType.TRANSLATION
        if ext in SOURCE_EXTENSIONS:
            return FileType.SOURCE
        if ext in DOC_EXTENSIONS:
            return FileType.DOC
        if ext in BINARY_EXTENSIONS:
            return FileType.BINARY
        return FileType.OTHER

    def is_text(self, filename: str) -> bool:
        ext = _extension(filename)
        if ext in _NON_TEXT_DOCS:
            return False
        if self.classify(filename) in (FileType.SOURCE, FileType.DOC, FileType.TRANSLATION):
            return True
        if ext in OTHER_TEXT_EXTENSIONS:
            return True
        return os.path.basename(filename or '').lower() in TEXT_FILENAMES
