from __future__ import annotations

import json
from string import Template
from typing import Dict

# Handler bodies for the default functions. Every template exports `main`
# and is parameterised only by the cloud type name so regeneration is stable.

_CLOUD_CONTROL_CALL = """\
  const child = await siExec.waitUntilEnd("aws", [
    "cloudcontrol",
    "$operation",
    "--region",
    region,
    "--type-name",
    $type_name,
$extra_args  ]);
"""

TEMPLATES: Dict[str, str] = {
    "action.create": """\
async function main(component: Input): Promise<Output> {
  if (component.properties.resource?.payload) {
    return { status: "error", message: "Resource already exists" };
  }
  const region = component.properties.extra?.Region || "";
  const desired = component.properties.code?.["awsCloudControlCreate"]?.code;
${create_call}
  if (child.exitCode !== 0) {
    return { status: "error", message: child.stderr };
  }
  const progress = JSON.parse(child.stdout).ProgressEvent;
  return { resourceId: progress.Identifier, status: "ok" };
}
""",
    "action.refresh": """\
async function main(component: Input): Promise<Output> {
  const region = component.properties.extra?.Region || "";
  const identifier = component.properties.si?.resourceId;
  if (!identifier) {
    return { status: "error", message: "No resource id to refresh" };
  }
${refresh_call}
  if (child.exitCode !== 0) {
    return { status: "error", message: child.stderr };
  }
  const description = JSON.parse(child.stdout).ResourceDescription;
  return { payload: JSON.parse(description.Properties), status: "ok" };
}
""",
    "action.update": """\
async function main(component: Input): Promise<Output> {
  const region = component.properties.extra?.Region || "";
  const identifier = component.properties.si?.resourceId;
  const patch = component.properties.code?.["awsCloudControlUpdate"]?.code;
${update_call}
  if (child.exitCode !== 0) {
    return { status: "error", message: child.stderr };
  }
  return { payload: component.properties.resource?.payload, status: "ok" };
}
""",
    "action.delete": """\
async function main(component: Input): Promise<Output> {
  const region = component.properties.extra?.Region || "";
  const identifier = component.properties.si?.resourceId;
${delete_call}
  if (child.exitCode !== 0) {
    return { status: "error", message: child.stderr };
  }
  return { payload: null, status: "ok" };
}
""",
    "leaf.qualification": """\
async function main(component: Input): Promise<Output> {
  const code = component.code?.["awsCloudControlCreate"]?.code;
  if (!code) {
    return { result: "failure", message: "No create payload for $display_type" };
  }
  try {
    JSON.parse(code);
  } catch (err) {
    return { result: "failure", message: `Invalid payload: $${err}` };
  }
  return { result: "success", message: "Payload is valid" };
}
""",
    "leaf.codeGeneration": """\
async function main(component: Input): Promise<Output> {
  const desired = _.cloneDeep(component.domain ?? {});
  return {
    format: "json",
    code: JSON.stringify({ TypeName: $type_name, DesiredState: desired }, null, 2),
  };
}
""",
    "management.import": """\
async function main({ thisComponent }: Input): Promise<Output> {
  const region = thisComponent.properties.extra?.Region || "";
  const identifier = thisComponent.properties.si?.resourceId;
  if (!identifier) {
    return { status: "error", message: "Set a resource id to import" };
  }
${import_call}
  if (child.exitCode !== 0) {
    return { status: "error", message: child.stderr };
  }
  const description = JSON.parse(child.stdout).ResourceDescription;
  return {
    status: "ok",
    ops: { update: { self: { properties: { domain: JSON.parse(description.Properties) } } } },
  };
}
""",
    "management.discover": """\
async function main({ thisComponent }: Input): Promise<Output> {
  const region = thisComponent.properties.extra?.Region || "";
${discover_call}
  if (child.exitCode !== 0) {
    return { status: "error", message: child.stderr };
  }
  const create: Record<string, unknown> = {};
  for (const item of JSON.parse(child.stdout).ResourceDescriptions ?? []) {
    create[item.Identifier] = { kind: $type_name, properties: { si: { resourceId: item.Identifier } } };
  }
  return { status: "ok", ops: { create } };
}
""",
}

_CALLS = {
    "create_call": ("create-resource", '    "--desired-state",\n    desired,\n'),
    "refresh_call": ("get-resource", '    "--identifier",\n    identifier,\n'),
    "update_call": ("update-resource", '    "--identifier",\n    identifier,\n    "--patch-document",\n    patch,\n'),
    "delete_call": ("delete-resource", '    "--identifier",\n    identifier,\n'),
    "import_call": ("get-resource", '    "--identifier",\n    identifier,\n'),
    "discover_call": ("list-resources", ""),
}


def render(template: str, *, type_name: str) -> str:
    if template not in TEMPLATES:
        raise KeyError(f"Unknown function template: {template}")
    literal = json.dumps(type_name)
    calls = {
        key: Template(_CLOUD_CONTROL_CALL).substitute(
            operation=operation, type_name=literal, extra_args=extra_args
        ).rstrip("\n")
        for key, (operation, extra_args) in _CALLS.items()
    }
    return Template(TEMPLATES[template]).substitute(
        type_name=literal,
        display_type=type_name,
        **calls,
    )
