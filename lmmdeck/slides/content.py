"""
The sleepstudy deck: from pooled regression to linear mixed models.

Chunks run in order in one namespace (see slides.execute), so names
such as fm0, fm1, fm2 are defined on one slide and reused on later ones.
"""

from __future__ import annotations

from lmmdeck.slides.deck import Chunk, Deck, Slide

DECK_TITLE = "Linear mixed-effects models"
DECK_SUBTITLE = "Repeated measures, random effects and likelihood-ratio tests"


def build_deck(title: str | None = None) -> Deck:
    """Build the deck. `title` overrides the default deck title."""
    return Deck(
        title=title or DECK_TITLE,
        slides=tuple(_slides()),
    )


def _slides():
    yield Slide(
        title=DECK_TITLE,
        body=(
            f"*{DECK_SUBTITLE}*\n\n"
            "1. Why ordinary regression is not enough for repeated measures\n"
            "2. Fixed and random effects\n"
            "3. Random intercepts, random slopes\n"
            "4. REML vs ML\n"
            "5. Comparing models with likelihood-ratio tests\n"
            "6. Practical caveats"
        ),
    )

    yield Slide(
        title="Motivation",
        body=(
            "Many studies measure the **same units repeatedly**: patients over "
            "visits, pupils within schools, subjects over days.\n\n"
            "- Observations from the same unit are more alike than observations "
            "from different units.\n"
            "- Ordinary regression assumes independent errors, so it understates "
            "uncertainty and ignores between-unit differences.\n"
            "- Mixed-effects models keep the population-level question "
            "(fixed effects) and model the unit-level variation (random effects)."
        ),
    )

    yield Slide(
        title="The data: sleep deprivation",
        body=(
            "Belenky et al. (2003): 18 subjects restricted to 3 hours of sleep "
            "per night. Average reaction time (ms) was measured on each of "
            "10 days; day 0 is baseline.\n\n"
            "180 rows: `Reaction`, `Days`, `Subject`."
        ),
        chunks=(
            Chunk("print(lmmdeck.datasets.sleepstudy_description())", echo=False, label='data-description'),
            Chunk("sleepstudy.head()", label='data-head'),
            Chunk(
                "sleepstudy.groupby('Subject', observed=True)['Reaction'].mean().describe()",
                label='data-subject-means',
            ),
        ),
    )

    yield Slide(
        title="Pooled linear regression",
        body=(
            "Ignore the subjects and fit one line through all 180 points."
        ),
        formula=r"y_{ij} = \beta_0 + \beta_1 \, \mathrm{Days}_{ij} + \varepsilon_{ij}, "
                r"\quad \varepsilon_{ij} \sim N(0, \sigma^2) \text{ i.i.d.}",
        chunks=(
            Chunk(
                "fm0 = lm('Reaction ~ Days', sleepstudy)\n"
                "print(fm0.summary())",
                label='pooled-fit',
            ),
            Chunk("plot_scatter(sleepstudy)", label='pooled-scatter'),
        ),
    )

    yield Slide(
        title="One line per subject?",
        body=(
            "Panels per subject show the problem: subjects differ in baseline "
            "speed **and** in how fast they deteriorate. Residuals of the pooled "
            "line are correlated within subject, so the independence assumption "
            "is violated and the standard errors above are not trustworthy."
        ),
        chunks=(
            Chunk(
                "plot_by_subject(sleepstudy, fits={'pooled OLS': fm0})",
                label='subject-panels',
            ),
        ),
    )

    yield Slide(
        title="The linear mixed model",
        body=(
            "Each subject *i* gets its own intercept and slope, drawn from a "
            "population distribution:\n\n"
            "- β₀, β₁: fixed effects, the population intercept and slope\n"
            "- b₀ᵢ, b₁ᵢ: random effects, subject-specific deviations\n"
            "- Σ: covariance of the random effects, σ²: residual variance\n\n"
            "In matrix form: **y** = **Xβ** + **Zb** + **ε**."
        ),
        formula=(
            r"y_{ij} = (\beta_0 + b_{0i}) + (\beta_1 + b_{1i}) \, \mathrm{Days}_{ij} "
            r"+ \varepsilon_{ij}, \quad "
            r"\begin{pmatrix} b_{0i} \\ b_{1i} \end{pmatrix} \sim N(\mathbf{0}, \Sigma), "
            r"\quad \varepsilon_{ij} \sim N(0, \sigma^2)"
        ),
        chunks=(
            Chunk(
                "rng = np.random.default_rng(2003)\n"
                "simulated = lmmdeck.datasets.simulate_sleepstudy(rng)\n"
                "plot_by_subject(simulated)",
                label='simulated-panels',
            ),
        ),
        notes="The simulated panels use the REML estimates as true values.",
    )

    yield Slide(
        title="Fixed vs random effects",
        body=(
            "**Fixed effect**: a predictor whose levels exhaust the population "
            "of interest, e.g. an experimental condition. We estimate each "
            "coefficient.\n\n"
            "**Random effect**: grouping units sampled from a larger population, "
            "e.g. subjects. We estimate the *variance* of their effects, and "
            "predict each unit's deviation (conditional modes, BLUPs).\n\n"
            "Formula notation (lme4): `Reaction ~ Days + (Days | Subject)`; "
            "the part in parentheses is random, grouped by `Subject`."
        ),
    )

    yield Slide(
        title="Random intercept model",
        body=(
            "Subjects differ in baseline reaction time only; all share the "
            "same slope. The intraclass correlation is the share of variance "
            "due to subjects."
        ),
        formula=r"y_{ij} = \beta_0 + b_{0i} + \beta_1 \, \mathrm{Days}_{ij} + \varepsilon_{ij}, "
                r"\quad \mathrm{ICC} = \frac{\sigma_0^2}{\sigma_0^2 + \sigma^2}",
        chunks=(
            Chunk(
                "fm1 = lmer('Reaction ~ Days + (1 | Subject)', sleepstudy)\n"
                "print(fm1.summary())",
                label='random-intercept',
            ),
            Chunk("round(fm1.icc, 3)", label='icc'),
        ),
    )

    yield Slide(
        title="Random intercept and slope",
        body=(
            "Subjects also differ in how much they deteriorate per day. "
            "The intercept and slope deviations may be correlated."
        ),
        chunks=(
            Chunk(
                "fm2 = lmer('Reaction ~ Days + (Days | Subject)', sleepstudy)\n"
                "print(fm2.summary())",
                label='random-slope',
            ),
            Chunk(
                "plot_by_subject(sleepstudy, fits={'pooled OLS': fm0, 'mixed model': fm2})",
                label='random-slope-panels',
            ),
        ),
    )

    yield Slide(
        title="Uncorrelated intercept and slope",
        body=(
            "`(Days || Subject)` drops the correlation: it is shorthand for "
            "`(1 | Subject) + (0 + Days | Subject)`. The estimated correlation "
            "in the previous model is small, so little is lost."
        ),
        chunks=(
            Chunk(
                "fm3 = lmer('Reaction ~ Days + (Days || Subject)', sleepstudy)\n"
                "print(fm3.summary())",
                label='uncorrelated',
            ),
        ),
    )

    yield Slide(
        title="Shrinkage",
        body=(
            "The mixed model's per-subject lines are pulled from the separate "
            "least-squares fits toward the population line. Subjects whose own "
            "data are noisy or extreme are pulled most: information is "
            "*borrowed* across subjects."
        ),
        chunks=(
            Chunk("plot_shrinkage(sleepstudy, fm2)", label='shrinkage'),
            Chunk("plot_ranef(fm2)", label='caterpillar'),
            Chunk("fm2.coef.head()", label='subject-coefficients'),
        ),
    )

    yield Slide(
        title="REML vs ML",
        body=(
            "**ML** maximises the likelihood of all parameters jointly; its "
            "variance estimates are biased downward because they ignore the "
            "degrees of freedom used by the fixed effects.\n\n"
            "**REML** maximises the likelihood of residual contrasts, which "
            "do not depend on β. Variance estimates are less biased.\n\n"
            "- Report variance components from REML fits (the default).\n"
            "- REML likelihoods of models with different fixed effects are "
            "not comparable: use ML for those tests."
        ),
        formula=r"\ell_R(\theta) = \ell(\hat\beta_\theta, \theta) "
                r"- \tfrac{1}{2} \log \left| X^\top V_\theta^{-1} X \right|",
        chunks=(
            Chunk(
                "fm2_ml = fm2.refit(reml=False)\n"
                "pd.DataFrame({\n"
                "    'REML': [vc.std_dev for vc in fm2.var_components] + [fm2.residual_std],\n"
                "    'ML': [vc.std_dev for vc in fm2_ml.var_components] + [fm2_ml.residual_std],\n"
                "}, index=[vc.name for vc in fm2.var_components] + ['Residual']).round(2)",
                label='reml-vs-ml',
            ),
        ),
    )

    yield Slide(
        title="Likelihood-ratio tests",
        body=(
            "Nested models are compared with twice the difference in "
            "log-likelihood, referred to a χ² distribution with degrees of "
            "freedom equal to the difference in number of parameters.\n\n"
            "Does the random slope improve on the random intercept model?"
        ),
        formula=r"\lambda = 2 \left( \ell_{\text{full}} - \ell_{\text{reduced}} \right) "
                r"\;\dot\sim\; \chi^2_{\,p_{\text{full}} - p_{\text{reduced}}}",
        chunks=(
            Chunk(
                "slopes = anova(fm1, fm2, names=['fm1', 'fm2'])\n"
                "print(slopes.summary())",
                label='lrt-slopes',
            ),
            Chunk("print(slopes.boundary_note)", label='boundary-note'),
        ),
    )

    yield Slide(
        title="Testing the fixed effect of Days",
        body=(
            "Both models are fitted by ML because their fixed effects differ. "
            "The Wald z-tests in the summary and the Wald confidence intervals "
            "below tell the same story."
        ),
        chunks=(
            Chunk(
                "fm_null = lmer('Reaction ~ 1 + (Days | Subject)', sleepstudy, reml=False)\n"
                "days_test = anova(fm_null, fm2_ml, names=['no Days', 'Days'])\n"
                "print(days_test.summary())",
                label='lrt-days',
            ),
            Chunk("fm2.confint().round(2)", label='confint'),
        ),
    )

    yield Slide(
        title="Singular fits and convergence",
        body=(
            "- A **singular** fit has a variance estimated at zero or a "
            "correlation at ±1: the random-effects structure is too rich for "
            "the data. Simplify it (drop the correlation or the slope).\n"
            "- **Non-convergence** warnings mean the optimiser stopped early; "
            "try another optimiser, rescale predictors, or simplify.\n"
            "- Few groups (< 5-6) make variance components hard to estimate.\n\n"
            "Below: simulated subjects that all share the same mean reaction "
            "time, so there is no between-subject variation to estimate."
        ),
        chunks=(
            Chunk(
                "rng = np.random.default_rng(42)\n"
                "flat = lmmdeck.datasets.simulate_sleepstudy(\n"
                "    rng, sd_intercept=0.0, sd_slope=0.0, center_subjects=True,\n"
                ")\n"
                "fm_flat = lmer('Reaction ~ Days + (1 | Subject)', flat)\n"
                "print(fm_flat.summary())",
                label='singular',
            ),
        ),
    )

    yield Slide(
        title="Summary",
        body=(
            "- Repeated measures violate the independence assumption of "
            "ordinary regression.\n"
            "- Mixed models separate population effects (fixed) from unit "
            "variation (random).\n"
            "- Random intercepts and slopes give each subject its own line, "
            "shrunk toward the population line.\n"
            "- Use REML for variance components, ML for comparing fixed "
            "effects.\n"
            "- Likelihood-ratio tests compare nested models; tests of a "
            "variance on the boundary are conservative.\n"
            "- Watch for singular fits and convergence warnings."
        ),
    )

    yield Slide(
        title="Glossary",
        body=(
            "**Fixed effect**: a predictor whose levels are treated as "
            "exhausting the population of interest (e.g., an experimental "
            "condition).\n\n"
            "**Random effect**: a predictor representing a sample from a larger "
            "population of grouping units (e.g., individual subjects), modeled "
            "as a source of variance rather than estimated level-by-level.\n\n"
            "**Mixed-effects model**: a regression model combining fixed and "
            "random effects to account for repeated-measures or nested/grouped "
            "data structure.\n\n"
            "**REML / ML**: restricted maximum likelihood vs. maximum "
            "likelihood estimation criteria used when fitting variance "
            "components.\n\n"
            "**Likelihood-ratio test**: a statistical test comparing nested "
            "models' fit via twice the difference in log-likelihood, "
            "asymptotically chi-square distributed."
        ),
    )
