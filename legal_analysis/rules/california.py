"""
California Jurisdiction Rules
=============================

Statutes of limitations, interest rates, statute lists, damages caps and
special provisions for US-CA.
"""

from ..schemas import BurdenStandard
from .types import JurisdictionRules, SpecialRule, DamagesCap, StatutoryMinimum


CONSUMER_PROTECTION_STATUTES = [
    "Cal. Civ. Code § 1750-1784 (CLRA - Consumers Legal Remedies Act)",
    "Cal. Bus. & Prof. Code § 17200-17210 (UCL - Unfair Competition Law)",
    "Cal. Bus. & Prof. Code § 17500-17509 (FAL - False Advertising Law)",
    "Cal. Com. Code § 2314 (Implied Warranty of Merchantability)",
    "Cal. Com. Code § 2315 (Implied Warranty of Fitness)",
    "Cal. Civ. Code § 1791-1795.8 (Song-Beverly Consumer Warranty Act)",
]

CONTRACT_STATUTES = [
    "Cal. Civ. Code § 1549 (Essential Elements of Contract)",
    "Cal. Civ. Code § 1550 (Contract Requirements)",
    "Cal. Civ. Code § 1565-1567 (Consent)",
    "Cal. Civ. Code § 1619-1633 (Contract Interpretation)",
    "Cal. Civ. Code § 1668 (Contracts Against Public Policy)",
    "Cal. Civ. Code § 3300 (Contract Damages - General Rule)",
    "Cal. Civ. Code § 3301 (Damages for Breach)",
    "Cal. Civ. Code § 3358 (Certain Damages)",
    "Cal. Civ. Code § 3289 (Prejudgment Interest)",
]

COMMERCIAL_STATUTES = [
    "Cal. Com. Code § 2301-2328 (Obligations of Seller)",
    "Cal. Com. Code § 2601-2616 (Buyer Remedies)",
    "Cal. Com. Code § 2703-2725 (Seller Remedies)",
    "Cal. Civ. Code § 1717 (Attorney Fees - Contracts)",
]

FRAUD_STATUTES = [
    "Cal. Civ. Code § 1709 (Deceit)",
    "Cal. Civ. Code § 1710 (Types of Deceit)",
    "Cal. Civ. Code § 1572 (Actual Fraud)",
]

RESTITUTION_STATUTES = [
    "Cal. Civ. Code § 1580-1585 (Restitution)",
    "Restatement (Third) of Restitution (persuasive authority)",
]

CLRA_DAMAGES_BASIS = "Cal. Civ. Code § 1780(a)(1)"

SPECIAL_RULES = [
    SpecialRule(
        id="clra_minimum_damages",
        category="consumer_protection",
        rule="CLRA provides minimum $1,000 actual damages for any violation",
        conditions=["CLRA violation established", "Consumer transaction"],
        effect="Award minimum $1,000 even if actual damages are less",
        statutory_basis=CLRA_DAMAGES_BASIS,
    ),
    SpecialRule(
        id="clra_treble_damages",
        category="consumer_protection",
        rule="CLRA allows treble damages for willful violations up to $5,000",
        conditions=["Willful CLRA violation", "Consumer transaction"],
        effect="May treble damages up to additional $5,000",
        statutory_basis=CLRA_DAMAGES_BASIS,
    ),
    SpecialRule(
        id="ucl_restitution",
        category="consumer_protection",
        rule="UCL provides only restitution, not damages",
        conditions=["UCL claim", "No concurrent damages claim"],
        effect="Limit recovery to restitution of money or property",
        statutory_basis="Cal. Bus. & Prof. Code § 17203",
    ),
    SpecialRule(
        id="prejudgment_interest_contracts",
        category="damages",
        rule="10% prejudgment interest on contract damages from date certain",
        conditions=["Contract claim", "Damages certain or capable of being made certain"],
        effect="Award 10% annual interest from date of breach/demand",
        statutory_basis="Cal. Civ. Code § 3289(b)",
    ),
    SpecialRule(
        id="attorney_fee_shifting",
        category="fees",
        rule="Prevailing party entitled to attorney fees if contract provides",
        conditions=["Contract contains attorney fee provision"],
        effect="Award reasonable attorney fees to prevailing party",
        statutory_basis="Cal. Civ. Code § 1717",
    ),
    SpecialRule(
        id="mitigation_duty",
        category="damages",
        rule="Claimant must take reasonable steps to mitigate damages",
        conditions=["Breach established", "Opportunity to mitigate existed"],
        effect="Reduce damages by amount that could have been avoided",
        statutory_basis="Cal. Civ. Code § 3358",
    ),
    SpecialRule(
        id="consequential_damages_foreseeability",
        category="damages",
        rule="Consequential damages must be foreseeable at time of contracting",
        conditions=["Contract claim", "Consequential damages sought"],
        effect="Award only damages that were reasonably foreseeable",
        statutory_basis="Cal. Civ. Code § 3300",
    ),
    SpecialRule(
        id="certainty_of_damages",
        category="damages",
        rule="Damages must be proven with reasonable certainty",
        conditions=["Damages claim"],
        effect="Deny speculative damages lacking evidentiary support",
        statutory_basis="Cal. Civ. Code § 3301",
    ),
]

CLRA_CAP = DamagesCap(
    type="statutory",
    max_amount=5000,
    statutory_basis=CLRA_DAMAGES_BASIS,
    conditions=["CLRA violation", "Treble damages sought"],
)

# General guideline, not statutory
PUNITIVE_CAP = DamagesCap(
    type="punitive",
    max_multiplier=10,
    conditions=[
        "Clear and convincing evidence of oppression, fraud, or malice",
        "Cal. Civ. Code § 3294",
    ],
)


CALIFORNIA_RULES = JurisdictionRules(
    jurisdiction="US-CA",
    display_name="California",

    small_claims_limit=12500,           # Individuals
    small_claims_limit_business=6250,   # Businesses (max 2 claims/year over $2,500)

    statute_of_limitations={
        "written_contract": 4,      # Cal. Code Civ. Proc. § 337
        "oral_contract": 2,         # Cal. Code Civ. Proc. § 339
        "breach_of_warranty": 4,    # Cal. Com. Code § 2725
        "fraud": 3,                 # Cal. Code Civ. Proc. § 338(d)
        "negligence": 2,            # Cal. Code Civ. Proc. § 335.1
        "property_damage": 3,       # Cal. Code Civ. Proc. § 338
        "personal_injury": 2,       # Cal. Code Civ. Proc. § 335.1
        "consumer_protection": 4,   # Cal. Civ. Code § 1783
        "unjust_enrichment": 4,     # General assumpsit
        "account_stated": 4,        # Cal. Code Civ. Proc. § 337
        "open_book_account": 4,     # Cal. Code Civ. Proc. § 337
    },
    limitation_categories={
        "breach_of_contract": "written_contract",
        "breach_contract": "written_contract",
        "contract": "written_contract",
        "oral_contract": "oral_contract",
        "warranty": "breach_of_warranty",
        "fraud": "fraud",
        "negligence": "negligence",
        "property_damage": "property_damage",
        "consumer_protection": "consumer_protection",
        "unjust_enrichment": "unjust_enrichment",
    },

    default_interest_rate=0.07,
    default_interest_basis="Cal. Civ. Code § 3289(a)",
    prejudgment_interest_rate=0.10,
    prejudgment_interest_basis="Cal. Civ. Code § 3289(b)",
    postjudgment_interest_rate=0.10,    # Cal. Code Civ. Proc. § 685.010

    consumer_protection_statutes=CONSUMER_PROTECTION_STATUTES,
    contract_statutes=CONTRACT_STATUTES,
    commercial_statutes=COMMERCIAL_STATUTES,
    base_statutes=CONTRACT_STATUTES[:2],
    statutes_by_dispute_type={
        "CONTRACT": CONTRACT_STATUTES,
        "SERVICE": CONSUMER_PROTECTION_STATUTES + CONTRACT_STATUTES[:4],
        "GOODS": CONSUMER_PROTECTION_STATUTES + CONTRACT_STATUTES[:4],
        "PAYMENT": [
            "Cal. Civ. Code § 3289 (Prejudgment Interest)",
            "Cal. Com. Code § 3104 (Negotiable Instruments)",
        ] + CONTRACT_STATUTES[:4],
    },
    default_dispute_statutes=CONTRACT_STATUTES[:6],
    statutes_by_issue={
        "fraud": FRAUD_STATUTES,
        "consumer_protection": CONSUMER_PROTECTION_STATUTES,
        "warranty": CONSUMER_PROTECTION_STATUTES,
        "unjust_enrichment": RESTITUTION_STATUTES,
    },

    default_burden_standard=BurdenStandard.PREPONDERANCE,
    elevated_burden_issues={
        "fraud": BurdenStandard.CLEAR_AND_CONVINCING,
        "punitive_damages": BurdenStandard.CLEAR_AND_CONVINCING,
        "reformation": BurdenStandard.CLEAR_AND_CONVINCING,
        "undue_influence": BurdenStandard.CLEAR_AND_CONVINCING,
    },

    damages_caps={
        "SERVICE": [CLRA_CAP],
        "GOODS": [CLRA_CAP],
        "*": [PUNITIVE_CAP],
    },
    statutory_minimums=[
        StatutoryMinimum(
            category="consumer_protection",
            amount=1000,
            rule_id="clra_minimum_damages",
            statutory_basis=CLRA_DAMAGES_BASIS,
            item_id="dmg-clra-min",
            label="CLRA minimum damages",
        ),
    ],

    special_rules=SPECIAL_RULES,

    code_abbreviations={
        "civil": "Cal. Civ. Code",
        "civil code": "Cal. Civ. Code",
        "ccp": "Cal. Code Civ. Proc.",
        "code of civil procedure": "Cal. Code Civ. Proc.",
        "commercial": "Cal. Com. Code",
        "commercial code": "Cal. Com. Code",
        "business and professions": "Cal. Bus. & Prof. Code",
        "bus & prof": "Cal. Bus. & Prof. Code",
    },

    jurisdictional_clarity=0.85,
)
