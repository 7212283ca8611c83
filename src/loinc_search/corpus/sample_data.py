"""
Built-in sample LOINC codes.

Used when no persisted corpus file exists, so the search path works out of
the box (vectors are then generated on the fly).
"""

from typing import List

from ..core.types import LoincCode


def _code(code, display_name, short_name, component, prop, system, class_name, method_type=None):
    return LoincCode(
        code=code,
        display_name=display_name,
        long_common_name=display_name,
        short_name=short_name,
        component=component,
        property=prop,
        time_aspect="Pt",
        system=system,
        scale_type="Qn",
        method_type=method_type,
        class_name=class_name,
        version_last_changed="2.73",
    )


SAMPLE_LOINC_CODES: List[LoincCode] = [
    _code("2339-0", "Glucose [Mass/volume] in Blood",
          "Glucose SerPl-mCnc", "Glucose", "MCnc", "Ser/Plas", "CHEM"),
    _code("2093-3", "Cholesterol [Mass/volume] in Serum or Plasma",
          "Cholesterol SerPl-mCnc", "Cholesterol", "MCnc", "Ser/Plas", "CHEM"),
    _code("789-8", "Erythrocytes [#/volume] in Blood by Automated count",
          "RBC # Bld Auto", "Erythrocytes", "NCnc", "Bld", "HEM/BC", "Automated count"),
    _code("6298-4", "Potassium [Moles/volume] in Blood",
          "Potassium Bld-sCnc", "Potassium", "SCnc", "Bld", "CHEM"),
    _code("718-7", "Hemoglobin [Mass/volume] in Blood",
          "Hemoglobin Bld-mCnc", "Hemoglobin", "MCnc", "Bld", "HEM/BC"),
    _code("4548-4", "Hemoglobin A1c/Hemoglobin.total in Blood",
          "Hemoglobin A1c/Hemoglobin.total Bld-mFr", "Hemoglobin A1c/Hemoglobin.total",
          "MFr", "Bld", "CHEM"),
    _code("33743-4", "Thyroid stimulating hormone [Units/volume] in Serum or Plasma",
          "TSH SerPl-cCnc", "Thyroid stimulating hormone", "CCnc", "Ser/Plas", "CHEM"),
    _code("2951-2", "Sodium [Moles/volume] in Serum or Plasma",
          "Sodium SerPl-sCnc", "Sodium", "SCnc", "Ser/Plas", "CHEM"),
    _code("777-3", "Platelets [#/volume] in Blood by Automated count",
          "Platelets # Bld Auto", "Platelets", "NCnc", "Bld", "HEM/BC", "Automated count"),
    _code("6690-2", "Leukocytes [#/volume] in Blood by Automated count",
          "WBC # Bld Auto", "Leukocytes", "NCnc", "Bld", "HEM/BC", "Automated count"),
]
