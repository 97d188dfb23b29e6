from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from . import __version__, model_storage
from .chunker import TreeTaggerChunker
from .config import ChunkerConfig
from .doc import Document
from .errors import TreeChunkError
from .language_utils import normalize_language
from .models import ModelKey, load_model
from .tag_mapping import Tagset

TASK_CHOICES = ("chunk", "tagset", "config")


def _configure_logging(args: argparse.Namespace) -> None:
    level = logging.WARNING
    if getattr(args, "verbose", False):
        level = logging.INFO
    if getattr(args, "debug", False):
        level = logging.DEBUG
    logging.basicConfig(level=level, format="[treechunk] %(message)s", stream=sys.stderr)


def _add_model_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--language", help="Use this language instead of the document language")
    parser.add_argument("--variant", help="Model variant (default: configured default variant)")
    parser.add_argument("--model-location", help="Explicit .properties or TreeTagger model file")
    parser.add_argument("--models-dir", help="Directory holding chunker-<lang>-<variant>.properties models")
    parser.add_argument(
        "--download-model",
        action="store_true",
        help="Download missing models from the configured model registry",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="treechunk",
        description="Chunk POS-tagged documents with TreeTagger.",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument("--version", "-V", action="version", version=f"treechunk {__version__}")
    subparsers = parser.add_subparsers(dest="task", required=False)

    parent_parser = argparse.ArgumentParser(add_help=False)
    parent_parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    parent_parser.add_argument("--verbose", action="store_true", help="Print high-level progress messages")

    chunk = subparsers.add_parser(
        "chunk",
        parents=[parent_parser],
        help="Add chunk spans to a JSON document",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    chunk.add_argument("--input", "-i", default="-", help="Input JSON document ('-' for stdin)")
    chunk.add_argument("--output", "-o", default="-", help="Output JSON document ('-' for stdout)")
    _add_model_args(chunk)
    chunk.add_argument("--executable", help="TreeTagger executable to use")
    chunk.add_argument("--chunk-mapping", help="Chunk mapping file ({language} and {tagset} are expanded)")
    chunk.add_argument("--flush-sequence", help="Override the model's flush sequence ('\\n' separated)")
    chunk.add_argument("--no-intern-tags", action="store_true", help="Do not intern chunk labels")
    chunk.add_argument("--print-tagset", action="store_true", help="Log the model tag set when it is loaded")
    chunk.add_argument(
        "--performance-mode",
        action="store_true",
        help="Skip token sanity checks before sending tokens to TreeTagger",
    )
    chunk.add_argument(
        "--outside-tag",
        default="O",
        help="Chunk category that never becomes a span",
    )
    chunk.add_argument(
        "--keep-outside",
        action="store_true",
        help="Emit spans for every category, including the outside tag",
    )
    chunk.add_argument("--layer", default="chunk", help="Span layer to write chunks to")
    chunk.add_argument(
        "--treetagger-extra-args",
        nargs=argparse.REMAINDER,
        help="Additional arguments passed to TreeTagger (must come last)",
    )

    tagset = subparsers.add_parser(
        "tagset",
        parents=[parent_parser],
        help="Show the chunk tag set declared by a model",
    )
    _add_model_args(tagset)

    config = subparsers.add_parser(
        "config",
        parents=[parent_parser],
        help="Show or change the treechunk configuration",
    )
    config.add_argument("--show", action="store_true", help="Print the current configuration")
    config.add_argument("--set-models-dir", help="Directory holding chunker models")
    config.add_argument("--set-default-variant", help="Variant used when none is requested")
    config.add_argument("--set-executable", help="TreeTagger executable")
    config.add_argument("--set-registry-url", help="Model registry URL (http(s):// or file://)")
    return parser


def _config_from_args(args: argparse.Namespace) -> ChunkerConfig:
    flush = args.flush_sequence.replace("\\n", "\n") if args.flush_sequence else None
    config = ChunkerConfig(
        language=args.language,
        variant=args.variant,
        model_location=args.model_location,
        executable_path=args.executable,
        chunk_mapping_location=args.chunk_mapping,
        intern_tags=not args.no_intern_tags,
        print_tagset=args.print_tagset,
        performance_mode=args.performance_mode,
        flush_sequence=flush,
        outside_tag=None if args.keep_outside else args.outside_tag,
        download_model=args.download_model,
        extra_args=args.treetagger_extra_args,
        span_layer=args.layer,
        models_dir=args.models_dir,
    )
    return config.with_user_defaults()


def _read_document(path: str) -> Document:
    if path == "-":
        data = json.load(sys.stdin)
    else:
        with open(path, "r", encoding="utf-8") as handle:
            data = json.load(handle)
    return Document.from_dict(data)


def _write_document(document: Document, path: str) -> None:
    payload = json.dumps(document.to_dict(), ensure_ascii=False, indent=2)
    if path == "-":
        sys.stdout.write(payload + "\n")
    else:
        Path(path).write_text(payload + "\n", encoding="utf-8")


def run_chunk(args: argparse.Namespace) -> int:
    config = _config_from_args(args)
    document = _read_document(args.input)
    with TreeTaggerChunker(config) as chunker:
        result = chunker.annotate(document)
    _write_document(result.document, args.output)
    logging.getLogger(__name__).info(
        "Added %d chunk(s) to %d sentence(s) with model %s",
        result.stats["spans"],
        result.stats["sentences"],
        result.stats["model"],
    )
    return 0


def run_tagset(args: argparse.Namespace) -> int:
    key = ModelKey(
        language=normalize_language(args.language),
        variant=args.variant or model_storage.get_default_variant(),
        location=args.model_location,
    )
    model = load_model(
        key,
        models_dir=Path(args.models_dir).expanduser() if args.models_dir else None,
        download_model=args.download_model,
    )
    tagset = Tagset.from_tags(model.metadata.tags, name=model.metadata.tagset)
    print(f"Model: {model.name} ({model.model_path})")
    if not tagset.labels:
        print("The model metadata declares no chunk tags (chunk.tags).")
        return 0
    print(tagset.format_table())
    return 0


def run_config(args: argparse.Namespace) -> int:
    changed = False
    if args.set_models_dir:
        model_storage.set_models_dir(args.set_models_dir)
        changed = True
    if args.set_default_variant:
        model_storage.set_default_variant(args.set_default_variant)
        changed = True
    if args.set_executable:
        model_storage.set_executable_path(args.set_executable)
        changed = True
    if args.set_registry_url:
        model_storage.set_model_registry_url(args.set_registry_url)
        changed = True
    if args.show or not changed:
        print(f"Config file:      {model_storage.get_config_file(create_dir=False)}")
        print(f"Models directory: {model_storage.get_models_dir(create=False)}")
        print(f"Default variant:  {model_storage.get_default_variant()}")
        print(f"Executable:       {model_storage.get_executable_path() or '(search PATH)'}")
        print(f"Model registry:   {model_storage.get_model_registry_url() or '(not set)'}")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(sys.argv[1:] if argv is None else list(argv))
    if not args.task:
        parser.error("No task specified. Use one of: " + ", ".join(TASK_CHOICES))
    _configure_logging(args)

    try:
        if args.task == "chunk":
            return run_chunk(args)
        if args.task == "tagset":
            return run_tagset(args)
        if args.task == "config":
            return run_config(args)
    except TreeChunkError as exc:
        print(f"[treechunk] Error: {exc}", file=sys.stderr)
        return 1
    parser.error(f"Unknown task: {args.task}")
    return 2


if __name__ == "__main__":
    sys.exit(main())
