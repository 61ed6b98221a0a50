import typer
import logging
from collections import defaultdict
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple
from typing_extensions import Annotated

from gfaligner import __version__
from gfaligner.config import Config, ConfigurationError, load_config, parse_skip
from gfaligner.core.errors import GfalignerError
from gfaligner.core.io import default_output_path
from gfaligner.core.models import Diagnostic
from gfaligner.graph.gfa_parser import GFAParser
from gfaligner.graph.path_indexer import GraphPathIndexer, PathIndex, read_reference_table, write_reference_table
from gfaligner.vcf.header import HeaderSynthesizer, add_header
from gfaligner.vcf.maf import DEFAULT_THRESHOLD, filter_hom_alt
from gfaligner.vcf.normalizer import ChromNormalizer
from gfaligner.vcf.pipeline import RecordPipeline
from gfaligner.vcf.resolver import AlignmentResolver, build_node_path_map, read_alignment_table
from gfaligner.vcf.sorter import DEFAULT_KEY, GENOMIC, RecordSorter, sort_vcf

logger = logging.getLogger("gfaligner")

DIAGNOSTIC_LOG_LIMIT = 20

app = typer.Typer(
    name="gfaligner",
    help="Convert VCF coordinates between linear references and GFA graph paths.",
    add_completion=False,
    no_args_is_help=True
)

ConfigOpt = Annotated[Optional[Path], typer.Option("--config", "-c", help="YAML configuration file")]
VerboseOpt = Annotated[bool, typer.Option("--verbose", help="Enable debug logging")]
StrictOpt = Annotated[bool, typer.Option("--strict", help="Treat malformed input lines as fatal")]
ThreadsOpt = Annotated[Optional[int], typer.Option("--threads", "-T", help="Number of worker threads")]
IgnoreOpt = Annotated[Optional[int], typer.Option("--ignore", "-i", help="Contig ignore level 0-5")]


def setup_logging(verbose: bool, level: str = "INFO"):
    logging.basicConfig(
        level=logging.DEBUG if verbose else getattr(logging, level.upper(), logging.INFO),
        format="[%(asctime)s] %(levelname)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def log_diagnostics(diagnostics: List[Diagnostic], limit: int = DIAGNOSTIC_LOG_LIMIT):
    """Log the first ``limit`` diagnostics of each source; summarise the rest."""
    by_source: Dict[str, List[Diagnostic]] = defaultdict(list)
    for diagnostic in diagnostics:
        by_source[diagnostic.source].append(diagnostic)
    for source, items in by_source.items():
        for diagnostic in items[:limit]:
            logger.warning(str(diagnostic))
        if len(items) > limit:
            logger.warning(f"{source}: {len(items) - limit} more problem lines not shown")


def fail(message: str):
    typer.echo(f"Error: {message}", err=True)
    raise typer.Exit(code=1)


def run_command(func: Callable[[], Any]):
    """Run a command body, turning expected failures into exit status 1."""
    try:
        return func()
    except ConfigurationError as e:
        fail(f"Configuration error: {e}")
    except GfalignerError as e:
        fail(str(e))
    except OSError as e:
        fail(str(e))


def load_settings(config: Optional[Path], verbose: bool, **overrides: Any) -> Config:
    settings = load_config(str(config) if config else None, **overrides)
    setup_logging(verbose, settings.get("log_level"))
    return settings


def log_arguments(command: str, **arguments: Any):
    logger.info(f"[{command}] Running with arguments:")
    for name, value in arguments.items():
        logger.info(f"    --{name:<12}: {value}")


def build_resolver(alignment: Optional[Path], reference: Optional[Path],
                   settings: Config) -> Tuple[AlignmentResolver, Optional[PathIndex]]:
    """Load the alignment and reference tables and merge them into one resolver."""
    strict = settings.get("strict")
    diagnostics: List[Diagnostic] = []
    entries = None
    reference_index = None
    if alignment is not None:
        entries, problems = read_alignment_table(alignment, strict=strict)
        diagnostics.extend(problems)
    if reference is not None:
        reference_index = read_reference_table(reference, strict=strict)
        diagnostics.extend(reference_index.diagnostics)
    log_diagnostics(diagnostics)
    node_paths = build_node_path_map(entries, reference_index, settings.get("duplicate_policy"),
                                     alignment_source=str(alignment), reference_source=str(reference))
    return AlignmentResolver(node_paths, settings.get("node_key")), reference_index


@app.command()
def align(
    vcf: Annotated[Path, typer.Option("--vcf", "-v", help="Input VCF file (plain or .gz)")],
    alignment: Annotated[Optional[Path], typer.Option("--alignment", "-t", help="Alignment table (node in column 1, path in column 5)")] = None,
    reference: Annotated[Optional[Path], typer.Option("--reference", "-r", help="Reference table from 'extract', used for nodes missing from the alignment table")] = None,
    skip: Annotated[Optional[str], typer.Option("--skip", "-s", help="Comma-separated substrings; records whose CHROM contains one are dropped")] = None,
    ignore: IgnoreOpt = None,
    sort: Annotated[bool, typer.Option("--sort", help="Sort records before writing")] = False,
    prefix: Annotated[Optional[str], typer.Option("--prefix", "--key", help="Sort key: column name, column index or 'genomic' (default POS)")] = None,
    reverse: Annotated[bool, typer.Option("--reverse", help="Sort in descending order")] = False,
    threads: ThreadsOpt = None,
    no_header: Annotated[bool, typer.Option("--no-header", help="Write records only")] = False,
    synthesize_header: Annotated[bool, typer.Option("--synthesize-header", help="Replace the header with a synthesized one (needs --reference)")] = False,
    output: Annotated[Optional[Path], typer.Option("--output", "-o", help="Output VCF (default: <input>.replaced.vcf)")] = None,
    config: ConfigOpt = None,
    strict: StrictOpt = False,
    verbose: VerboseOpt = False
):
    """Replace CHROM with graph path names, then filter, normalize and optionally sort."""
    def body():
        settings = load_settings(config, verbose, threads=threads, ignore_level=ignore,
                                 skip=parse_skip(skip) if skip is not None else None,
                                 sort_key=prefix, reverse=reverse or None, strict=strict or None)
        if alignment is None and reference is None:
            fail("At least one of --alignment or --reference is required")
        if no_header and synthesize_header:
            fail("--no-header and --synthesize-header cannot be combined")
        if synthesize_header and reference is None:
            fail("--synthesize-header needs --reference for contig lines")

        sorting = sort or prefix is not None
        suffix = ".replaced.sorted" if sorting else ".replaced"
        out_path = output or default_output_path(vcf, suffix)
        log_arguments("align", vcf=vcf, alignment=alignment, reference=reference, output=out_path,
                      skip=",".join(settings.get("skip")), ignore=settings.get("ignore_level"),
                      sort=sorting, prefix=settings.get("sort_key"), reverse=settings.get("reverse"),
                      threads=settings.get("threads"))

        resolver, reference_index = build_resolver(alignment, reference, settings)
        normalizer = ChromNormalizer(settings.get("ignore_level"), settings.get("skip"))
        pipeline = RecordPipeline(resolver, normalizer,
                                  threads=settings.get("threads"),
                                  pool_type=settings.get("pool_type"),
                                  chunk_lines=settings.get("chunk_lines"),
                                  on_malformed=settings.get("on_malformed"),
                                  strict=settings.get("strict"),
                                  progress=settings.get("progress"))
        sorter = None
        if sorting:
            sorter = RecordSorter(settings.get("sort_key") or DEFAULT_KEY, settings.get("reverse"))
        synthesizer = None
        header_mode = "keep"
        if no_header:
            header_mode = "none"
        elif synthesize_header:
            header_mode = "synthesize"
            synthesizer = HeaderSynthesizer(reference_index, settings.get("ignore_level"),
                                            threads=settings.get("threads"),
                                            pool_type=settings.get("pool_type"))

        stats = pipeline.run(vcf, out_path, header_mode=header_mode, sorter=sorter, synthesizer=synthesizer)
        log_diagnostics(stats.diagnostics)
        typer.echo(f"Aligned VCF written to {out_path} ({stats.emitted} records)")

    run_command(body)


@app.command()
def extract(
    gfa: Annotated[Path, typer.Option("--gfa", "-g", help="Input GFA file")],
    output: Annotated[Optional[Path], typer.Option("--output", "-o", help="Output table (default: reference.tsv beside the GFA)")] = None,
    threads: ThreadsOpt = None,
    config: ConfigOpt = None,
    verbose: VerboseOpt = False
):
    """Write the node/start/end/path table of every path in a GFA."""
    def body():
        settings = load_settings(config, verbose, threads=threads)
        out_path = output or gfa.parent / "reference.tsv"
        log_arguments("extract", gfa=gfa, output=out_path, threads=settings.get("threads"))

        graph = GFAParser().parse(str(gfa))
        indexer = GraphPathIndexer(threads=settings.get("threads"),
                                   pool_type=settings.get("pool_type"),
                                   progress=settings.get("progress"))
        index = indexer.build(graph)
        rows = write_reference_table(index, out_path)
        typer.echo(f"Reference table written to {out_path} ({rows} intervals)")

    run_command(body)


@app.command()
def header(
    vcf: Annotated[Path, typer.Option("--vcf", "-v", help="Input VCF file (plain or .gz)")],
    reference: Annotated[Path, typer.Option("--reference", "-r", help="Reference table from 'extract'")],
    ignore: IgnoreOpt = None,
    samples: Annotated[Optional[str], typer.Option("--samples", help="Comma-separated sample names for the #CHROM line")] = None,
    threads: ThreadsOpt = None,
    output: Annotated[Optional[Path], typer.Option("--output", "-o", help="Output VCF (default: <input>.withheader.vcf)")] = None,
    config: ConfigOpt = None,
    strict: StrictOpt = False,
    verbose: VerboseOpt = False
):
    """Synthesize contig, INFO and FORMAT header lines for a VCF body."""
    def body():
        settings = load_settings(config, verbose, threads=threads, header_ignore_level=ignore,
                                 strict=strict or None)
        out_path = output or default_output_path(vcf, ".withheader")
        log_arguments("header", vcf=vcf, reference=reference, output=out_path,
                      ignore=settings.get("header_ignore_level"), threads=settings.get("threads"))

        reference_index = read_reference_table(reference, strict=settings.get("strict"))
        log_diagnostics(reference_index.diagnostics)
        synthesizer = HeaderSynthesizer(reference_index, settings.get("header_ignore_level"),
                                        samples=parse_skip(samples) if samples is not None else None,
                                        threads=settings.get("threads"),
                                        pool_type=settings.get("pool_type"),
                                        progress=settings.get("progress"))
        header_lines, records = add_header(vcf, out_path, synthesizer)
        typer.echo(f"VCF with synthesized header written to {out_path} "
                   f"({header_lines} header lines, {records} records)")

    run_command(body)


@app.command("sort")
def sort_command(
    vcf: Annotated[Path, typer.Option("--vcf", "-v", help="Input VCF file (plain or .gz)")],
    prefix: Annotated[Optional[str], typer.Option("--prefix", "--key", help="Sort key: column name, column index or 'genomic' (default)")] = None,
    reverse: Annotated[bool, typer.Option("--reverse", help="Sort in descending order")] = False,
    output: Annotated[Optional[Path], typer.Option("--output", "-o", help="Output VCF (default: <input>.sorted.vcf)")] = None,
    config: ConfigOpt = None,
    verbose: VerboseOpt = False
):
    """Sort a VCF body, keeping its header."""
    def body():
        settings = load_settings(config, verbose, sort_key=prefix, reverse=reverse or None)
        out_path = output or default_output_path(vcf, ".sorted")
        key = settings.get("sort_key") or GENOMIC
        log_arguments("sort", vcf=vcf, output=out_path, prefix=key, reverse=settings.get("reverse"))

        records = sort_vcf(vcf, out_path, RecordSorter(key, settings.get("reverse")))
        typer.echo(f"Sorted VCF written to {out_path} ({records} records)")

    run_command(body)


@app.command()
def maf(
    vcf: Annotated[Path, typer.Option("--vcf", "-v", help="Input VCF file (plain or .gz)")],
    thresh: Annotated[float, typer.Option("--thresh", help="Minimum fraction of 1/1 genotypes (exclusive)")] = DEFAULT_THRESHOLD,
    threads: ThreadsOpt = None,
    output: Annotated[Optional[Path], typer.Option("--output", "-o", help="Output VCF (default: <input>.maf.vcf)")] = None,
    config: ConfigOpt = None,
    verbose: VerboseOpt = False
):
    """Keep records whose hom-alt genotype fraction exceeds a threshold."""
    def body():
        settings = load_settings(config, verbose, threads=threads)
        out_path = output or default_output_path(vcf, ".maf")
        log_arguments("maf", vcf=vcf, thresh=thresh, output=out_path, threads=settings.get("threads"))

        total, kept = filter_hom_alt(vcf, out_path, thresh,
                                     threads=settings.get("threads"),
                                     pool_type=settings.get("pool_type"),
                                     progress=settings.get("progress"))
        typer.echo(f"Filtered VCF written to {out_path} ({kept} of {total} records kept)")

    run_command(body)


@app.callback(invoke_without_command=True)
def version_callback(
    version: Annotated[bool, typer.Option("--version", help="Show the version and exit")] = False
):
    if version:
        typer.echo(f"gfaligner {__version__}")
        raise typer.Exit()


def main():
    app()


if __name__ == "__main__":
    main()
