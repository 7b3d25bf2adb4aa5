"""
Stage spec construction for annotation workloads.

A workload runs three phases in sequence: download the inputs, annotate, upload
the results. Each phase reads exactly one configuration string. The builder
turns a stored job plus its ``JobConfig`` into those three strings and is pure:
the same inputs always produce the same output.
"""

import posixpath

from baktaforge.config import JobSettings
from baktaforge.core.exceptions import ConfigError
from baktaforge.models import RESULT_ARTIFACTS, Job
from baktaforge.schemas import DermType, JobConfig

# Translation tables the annotator accepts besides its default
SUPPORTED_TRANSLATION_TABLES = (4, 11)

GRAM_FLAGS = {
    DermType.UNKNOWN: "?",
    DermType.MONODERM: "+",
    DermType.DIDERM: "-",
}

# Free-text fields in emission order: (JobConfig attribute, flag)
_LOCUS_FIELDS = (
    ("locus", "--locus"),
    ("locus_tag", "--locus-tag"),
)
_TAXONOMY_FIELDS = (
    ("genus", "--genus"),
    ("species", "--species"),
    ("strain", "--strain"),
    ("plasmid", "--plasmid"),
)

_UNQUOTABLE = ("\n", "\r", "\0")


def quote_arg(value: str, field: str | None = None) -> str:
    """
    Double-quote a user supplied value, escaping ``\\`` and ``"``.

    ``shlex.split`` on the result yields exactly ``value``.

    Raises:
        ConfigError: value contains a line break or NUL
    """
    if any(char in value for char in _UNQUOTABLE):
        raise ConfigError("Value must not contain line breaks or NUL characters", field=field)
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


class JobSpecBuilder:
    """Builds the download, annotate and upload specs for a job."""

    def __init__(self, job_settings: JobSettings):
        self.staging_dir = job_settings.staging_dir
        self.cache_dir = job_settings.cache_dir
        self.output_dir = job_settings.output_dir
        self.endpoint = job_settings.storage_endpoint
        self.threads = job_settings.threads
        self.mock_database = job_settings.mock_database

    def _staged(self, key: str) -> str:
        return posixpath.join(self.staging_dir, posixpath.basename(key))

    def build_download_spec(
        self,
        job: Job,
        has_training_file: bool,
        has_replicons: bool,
    ) -> str:
        keys = [job.fasta_key]
        if has_training_file:
            keys.append(job.training_key)
        if has_replicons:
            keys.append(job.replicon_key)
        buckets = [job.data_bucket] * len(keys)

        return (
            f"download -b {','.join(buckets)} -k {','.join(keys)} "
            f"-d {self.staging_dir} -e {self.endpoint}"
        )

    def build_annotate_spec(self, job: Job, config: JobConfig) -> str:
        """
        Build the annotator command line.

        Flag order is fixed. Optional inputs are referenced only when uploaded,
        boolean switches are bare flags, free text is quoted, and the FASTA
        file is the last positional argument.
        """
        args = [
            "--tmp-dir", self.cache_dir,
            "--threads", str(self.threads),
            "--prefix", "result",
            "-o", self.output_dir,
        ]

        if config.min_contig_length > 0:
            args += ["--min-contig-length", str(config.min_contig_length)]
        if config.has_training_file:
            args += ["--prodigal-tf", self._staged(job.training_key)]
        if config.has_replicons:
            args += ["--replicons", self._staged(job.replicon_key)]

        args += ["--db", "/db/db-mock" if self.mock_database else "/db/db"]

        if config.complete_genome:
            args.append("--complete")

        for attr, flag in _LOCUS_FIELDS:
            value = getattr(config, attr)
            if value:
                args += [flag, quote_arg(value, attr)]

        if config.keep_contig_headers:
            args.append("--keep-contig-headers")

        for attr, flag in _TAXONOMY_FIELDS:
            value = getattr(config, attr)
            if value:
                args += [flag, quote_arg(value, attr)]

        if config.compliant:
            args.append("--compliant")

        # Other values fall back to the annotator default table
        if config.translation_table in SUPPORTED_TRANSLATION_TABLES:
            args += ["--translation-table", str(config.translation_table)]

        args += ["--gram", GRAM_FLAGS[config.derm_type]]
        args.append(self._staged(job.fasta_key))

        return " ".join(args)

    def build_upload_spec(self, job: Job) -> str:
        files = ",".join(
            posixpath.join(self.output_dir, f"result.{suffix}")
            for _, suffix in RESULT_ARTIFACTS
        )
        return f"upload -e {self.endpoint} -k {job.result_key} -b {job.data_bucket} -f {files}"
