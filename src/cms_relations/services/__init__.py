# SPDX-License-Identifier: GPL-3.0-or-later
# Copyright (C) 2026 CMS Relations Contributors

from cms_relations.services.batch import BatchCommitCoordinator, EditSession
from cms_relations.services.cascade import CascadeReport, CascadeResolver
from cms_relations.services.constraints import Violation, ViolationCode, validate
from cms_relations.services.definitions import DefinitionStore
from cms_relations.services.entries import EntryStore
from cms_relations.services.picker import CandidatePicker, PickerSelection
from cms_relations.services.relations import RelationStore, ReplaceResult

__all__ = [
    "BatchCommitCoordinator",
    "CandidatePicker",
    "CascadeReport",
    "CascadeResolver",
    "DefinitionStore",
    "EditSession",
    "EntryStore",
    "PickerSelection",
    "RelationStore",
    "ReplaceResult",
    "Violation",
    "ViolationCode",
    "validate",
]
