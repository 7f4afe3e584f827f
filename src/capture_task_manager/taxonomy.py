"""Instrument class and raw data type taxonomy.

Instrument classes and raw data types arrive as free text from the task source,
where data entry is unreliable. Parsing is therefore permissive: anything that
cannot be recognized maps to ``UNKNOWN`` instead of raising.
"""

from __future__ import annotations

from enum import Enum


class InstrumentClass(str, Enum):
    """Instrument families known to the capture pipeline."""

    UNKNOWN = "Unknown"
    FINNIGAN_ION_TRAP = "Finnigan_Ion_Trap"
    LTQ_FT = "LTQ_FT"
    TRIPLE_QUAD = "Triple_Quad"
    THERMO_EXACTIVE = "Thermo_Exactive"
    AGILENT_ION_TRAP = "Agilent_Ion_Trap"
    AGILENT_TOF = "Agilent_TOF"
    AGILENT_TOF_V2 = "Agilent_TOF_V2"
    BRUKER_AMAZON_ION_TRAP = "Bruker_Amazon_Ion_Trap"
    BRUKER_FT_BAF = "BrukerFT_BAF"
    BRUKER_FTMS = "BrukerFTMS"
    BRUKER_MALDI_IMAGING = "BrukerMALDI_Imaging"
    BRUKER_MALDI_SPOT = "BrukerMALDI_Spot"
    BRUKER_TOF_BAF = "BrukerTOF_BAF"
    DATA_FOLDERS = "Data_Folders"
    FINNIGAN_FTICR = "Finnigan_FTICR"
    IMS_AGILENT_TOF_UIMF = "IMS_Agilent_TOF_UIMF"
    WATERS_TOF = "Waters_TOF"
    QSTAR_QTOF = "QStar_QTOF"
    SCIEX_QTRAP = "Sciex_QTrap"
    SCIEX_TRIPLE_TOF = "Sciex_TripleTOF"
    PREP_HPLC = "PrepHPLC"
    BRUKER_MALDI_IMAGING_V2 = "BrukerMALDI_Imaging_V2"
    ILLUMINA_SEQUENCER = "Illumina_Sequencer"
    GC_QEXACTIVE = "GC_QExactive"
    WATERS_IMS = "Waters_IMS"
    SHIMADZU_GC = "Shimadzu_GC"
    BRUKER_TOF_TDF = "BrukerTOF_TDF"
    FT_BOOSTER_DATA = "FT_Booster_Data"
    IMS_AGILENT_TOF_DOTD = "IMS_Agilent_TOF_DotD"
    THERMO_SII_LC = "Thermo_SII_LC"
    WATERS_ACQUITY_LC = "Waters_Acquity_LC"
    LCMSNET_LC = "LCMSNet_LC"


class RawDataType(str, Enum):
    """On-disk dataset formats; values are the lowercase task-source tokens."""

    UNKNOWN = "unknown"
    DOT_D_FOLDERS = "dot_d_folders"
    ZIPPED_S_FOLDERS = "zipped_s_folders"
    DOT_RAW_FOLDER = "dot_raw_folder"
    DOT_RAW_FILES = "dot_raw_files"
    DOT_WIFF_FILES = "dot_wiff_files"
    SCIEX_WIFF_FILES = "sciex_wiff_files"
    DOT_UIMF_FILES = "dot_uimf_files"
    DOT_MZXML_FILES = "dot_mzxml_files"
    DOT_MZML_FILES = "dot_mzml_files"
    DOT_QGD_FILES = "dot_qgd_files"
    BRUKER_FT = "bruker_ft"
    BRUKER_MALDI_SPOT = "bruker_maldi_spot"
    BRUKER_MALDI_IMAGING = "bruker_maldi_imaging"
    BRUKER_TOF_BAF = "bruker_tof_baf"
    BRUKER_TOF_TDF = "bruker_tof_tdf"
    BRUKER_TOF_TSF = "bruker_tof_tsf"
    ILLUMINA_FOLDER = "illumina_folder"
    LCMSNET_LCMETHOD = "lcmsnet_lcmethod"


DOT_WIFF_EXTENSION = ".wiff"
DOT_D_EXTENSION = ".d"
DOT_RAW_EXTENSION = ".raw"
DOT_UIMF_EXTENSION = ".uimf"
DOT_MZXML_EXTENSION = ".mzxml"
DOT_MZML_EXTENSION = ".mzml"
DOT_MGF_EXTENSION = ".mgf"
DOT_CDF_EXTENSION = ".cdf"
DOT_TXT_GZ_EXTENSION = ".txt.gz"
DOT_QGD_EXTENSION = ".qgd"
DOT_LCMETHOD_EXTENSION = ".lcmethod"

# Instruments whose datasets are normally directories; search those before files.
_DIRECTORY_FIRST_CLASSES: frozenset[InstrumentClass] = frozenset(
    {
        InstrumentClass.BRUKER_MALDI_IMAGING,
        InstrumentClass.BRUKER_MALDI_IMAGING_V2,
        InstrumentClass.IMS_AGILENT_TOF_UIMF,
        InstrumentClass.IMS_AGILENT_TOF_DOTD,
        InstrumentClass.WATERS_TOF,
        InstrumentClass.WATERS_IMS,
    },
)

# Distinctive files or directories found in a dataset of each raw data type.
_EXPECTED_PATTERNS: dict[RawDataType, tuple[str, ...]] = {
    RawDataType.DOT_D_FOLDERS: ("*.d",),
    RawDataType.ZIPPED_S_FOLDERS: ("s*.zip", "analysis.baf"),
    RawDataType.DOT_RAW_FOLDER: ("*.raw",),
    RawDataType.DOT_RAW_FILES: ("*.raw",),
    RawDataType.DOT_WIFF_FILES: ("*.wiff",),
    RawDataType.SCIEX_WIFF_FILES: ("*.wiff", "*.wiff.scan"),
    RawDataType.DOT_UIMF_FILES: ("*.uimf",),
    RawDataType.DOT_MZXML_FILES: ("*.mzxml",),
    RawDataType.DOT_MZML_FILES: ("*.mzml",),
    RawDataType.DOT_QGD_FILES: ("*.qgd",),
    RawDataType.BRUKER_FT: ("*.d", "analysis.baf", "*.m"),
    RawDataType.BRUKER_MALDI_SPOT: ("*.emf", "acqu", "fid"),
    RawDataType.BRUKER_MALDI_IMAGING: ("*.zip", "*.jpg"),
    RawDataType.BRUKER_TOF_BAF: ("*.d", "analysis.baf", "*.m"),
    RawDataType.BRUKER_TOF_TDF: ("*.d", "analysis.tdf", "*.m"),
    RawDataType.BRUKER_TOF_TSF: ("*.d", "analysis.tsf", "*.mis", "*.jpg"),
    RawDataType.ILLUMINA_FOLDER: ("*.txt.gz",),
    RawDataType.LCMSNET_LCMETHOD: ("*.lcmethod",),
}

_INSTRUMENT_CLASS_LOOKUP: dict[str, InstrumentClass] = {
    member.value.lower(): member for member in InstrumentClass
}
_RAW_DATA_TYPE_LOOKUP: dict[str, RawDataType] = {member.value: member for member in RawDataType}


def classify_instrument(name: str | None) -> InstrumentClass:
    """Map instrument class text to the enum, case-insensitively; ``UNKNOWN`` if unrecognized."""

    if not name:
        return InstrumentClass.UNKNOWN
    return _INSTRUMENT_CLASS_LOOKUP.get(name.strip().lower(), InstrumentClass.UNKNOWN)


def classify_raw_data_type(token: str | None) -> RawDataType:
    """Map a raw data type token to the enum, case-insensitively; ``UNKNOWN`` if unrecognized."""

    if not token:
        return RawDataType.UNKNOWN
    return _RAW_DATA_TYPE_LOOKUP.get(token.strip().lower(), RawDataType.UNKNOWN)


def name_of(instrument_class: InstrumentClass) -> str:
    return instrument_class.value


def token_of(raw_data_type: RawDataType) -> str:
    return raw_data_type.value


def prefers_directories(instrument_class: InstrumentClass) -> bool:
    """Whether datasets from this instrument class should be searched as directories first."""

    return instrument_class in _DIRECTORY_FIRST_CLASSES


def expected_patterns(raw_data_type: RawDataType) -> tuple[str, ...]:
    """Glob patterns for files or directories characteristic of the raw data type."""

    return _EXPECTED_PATTERNS.get(raw_data_type, ())
